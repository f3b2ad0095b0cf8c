"""Risk aggregate.

A ``Risk`` holds its assessment, ownership, review cadence and links to
controls and assets. State is private; the only way to change it is the
mutation methods below, each of which records who changed the risk and
when. Failures raise ``DomainError`` subclasses and leave the risk
unchanged.
"""

import math
from collections.abc import Iterable
from datetime import datetime
from enum import Enum
from typing import TypeVar

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from riskledger.core.exceptions import IllegalTransitionError, ValidationError
from riskledger.risk.review import ReviewCadence
from riskledger.risk.scoring import RiskScore, calculate
from riskledger.risk.transitions import can_transition
from riskledger.risk.types import (
    RiskCategory,
    RiskImpact,
    RiskLikelihood,
    RiskStatus,
)
from riskledger.risk.values import RiskName, RiskOwner

RISK_DESCRIPTION_MAX_LENGTH = 2000
REFERENCE_ID_MAX_LENGTH = 255
TAG_MAX_LENGTH = 100

E = TypeVar("E", bound=Enum)


def coerce_enum(enum_cls: type[E], value: E | str | None, field: str) -> E:
    """Convert a raw value to an enum member or raise ``ValidationError``."""
    if value is None or value == "":
        raise ValidationError(field, f"{field.replace('_', ' ').capitalize()} is required")
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(field, f"Invalid {field.replace('_', ' ')}: {value!r}") from None


def check_length(value: str, field: str, max_length: int) -> None:
    if len(value) > max_length:
        raise ValidationError(
            field, f"{field.replace('_', ' ').capitalize()} cannot exceed {max_length} characters"
        )


def unique_ids(
    values: Iterable[str] | None,
    field: str,
    max_length: int = REFERENCE_ID_MAX_LENGTH,
) -> tuple[str, ...]:
    """Drop duplicates while keeping first-seen order.

    Raises:
        ValidationError: If any value is longer than ``max_length``
    """
    if not values:
        return ()
    ids = tuple(dict.fromkeys(values))
    for value in ids:
        check_length(value, field, max_length)
    return ids


class RiskSnapshot(BaseModel):
    """Immutable copy of a risk's state, used for persistence and transport."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    category: RiskCategory
    status: RiskStatus
    inherent_impact: RiskImpact
    inherent_likelihood: RiskLikelihood
    inherent_risk_score: RiskScore
    residual_impact: RiskImpact | None = None
    residual_likelihood: RiskLikelihood | None = None
    residual_risk_score: RiskScore | None = None
    owner: RiskOwner | None = None
    related_control_ids: tuple[str, ...] = ()
    related_asset_ids: tuple[str, ...] = ()
    review_cadence: ReviewCadence | None = None
    tags: tuple[str, ...] = ()
    is_active: bool = True
    created_by: str
    created_at: AwareDatetime
    updated_by: str | None = None
    updated_at: AwareDatetime | None = None
    version: int = Field(default=0, ge=0)


class Risk:
    """An identified risk and its assessment."""

    def __init__(self, snapshot: RiskSnapshot):
        """Build a risk from a snapshot.

        Use ``Risk.create`` for new risks and ``Risk.from_snapshot`` to
        rehydrate stored ones.
        """
        self._id = snapshot.id
        self._name = RiskName(value=snapshot.name)
        self._description = snapshot.description
        self._category = snapshot.category
        self._status = snapshot.status
        self._inherent_impact = snapshot.inherent_impact
        self._inherent_likelihood = snapshot.inherent_likelihood
        # Scores are always derived, never trusted from storage
        self._inherent_risk_score = calculate(snapshot.inherent_impact, snapshot.inherent_likelihood)
        self._residual_impact = snapshot.residual_impact
        self._residual_likelihood = snapshot.residual_likelihood
        self._residual_risk_score = (
            calculate(snapshot.residual_impact, snapshot.residual_likelihood)
            if snapshot.residual_impact is not None and snapshot.residual_likelihood is not None
            else None
        )
        self._owner = snapshot.owner
        self._related_control_ids = list(snapshot.related_control_ids)
        self._related_asset_ids = list(snapshot.related_asset_ids)
        self._review_cadence = snapshot.review_cadence
        self._tags = list(snapshot.tags)
        self._is_active = snapshot.is_active
        self._created_by = snapshot.created_by
        self._created_at = snapshot.created_at
        self._updated_by = snapshot.updated_by
        self._updated_at = snapshot.updated_at
        self._version = snapshot.version

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def create(
        cls,
        *,
        risk_id: str,
        name: str | RiskName,
        description: str,
        category: RiskCategory | str,
        inherent_impact: RiskImpact | str,
        inherent_likelihood: RiskLikelihood | str,
        created_by: str,
        created_at: datetime,
        status: RiskStatus | str | None = None,
        residual_impact: RiskImpact | str | None = None,
        residual_likelihood: RiskLikelihood | str | None = None,
        owner: RiskOwner | None = None,
        related_control_ids: Iterable[str] | None = None,
        related_asset_ids: Iterable[str] | None = None,
        review_cadence: ReviewCadence | None = None,
        tags: Iterable[str] | None = None,
        is_active: bool = True,
    ) -> "Risk":
        """Create a new risk with its inherent assessment.

        Raises:
            ValidationError: If any field is missing or out of range
            IllegalTransitionError: If created as CLOSED without a residual assessment
        """
        if not risk_id:
            raise ValidationError("id", "Risk ID is required")
        risk_name = name if isinstance(name, RiskName) else RiskName.create(name)
        _validate_description(description)
        category = coerce_enum(RiskCategory, category, "category")
        inherent_impact = coerce_enum(RiskImpact, inherent_impact, "inherent_impact")
        inherent_likelihood = coerce_enum(RiskLikelihood, inherent_likelihood, "inherent_likelihood")
        if not created_by:
            raise ValidationError("created_by", "Created by user ID is required")

        residual_score = None
        if residual_impact is not None or residual_likelihood is not None:
            if residual_impact is None or residual_likelihood is None:
                raise ValidationError(
                    "residual_assessment",
                    "Residual impact and likelihood must be provided together",
                )
            residual_impact = coerce_enum(RiskImpact, residual_impact, "residual_impact")
            residual_likelihood = coerce_enum(
                RiskLikelihood, residual_likelihood, "residual_likelihood"
            )
            residual_score = calculate(residual_impact, residual_likelihood)

        initial_status = (
            coerce_enum(RiskStatus, status, "status") if status is not None else RiskStatus.IDENTIFIED
        )
        if initial_status == RiskStatus.CLOSED and residual_score is None:
            raise IllegalTransitionError(
                "Cannot close a risk without residual risk assessment",
                entity="Risk",
                requested=RiskStatus.CLOSED,
            )

        asset_ids = unique_ids(related_asset_ids, "related_asset_ids")
        if risk_id in asset_ids:
            raise IllegalTransitionError(
                "A risk cannot be linked to itself as an asset",
                entity="Risk",
                current=risk_id,
                requested="link_asset",
            )

        snapshot = RiskSnapshot(
            id=risk_id,
            name=risk_name.value,
            description=description,
            category=category,
            status=initial_status,
            inherent_impact=inherent_impact,
            inherent_likelihood=inherent_likelihood,
            inherent_risk_score=calculate(inherent_impact, inherent_likelihood),
            residual_impact=residual_impact,
            residual_likelihood=residual_likelihood,
            residual_risk_score=residual_score,
            owner=owner,
            related_control_ids=unique_ids(related_control_ids, "related_control_ids"),
            related_asset_ids=asset_ids,
            review_cadence=review_cadence,
            tags=unique_ids(tags, "tags", TAG_MAX_LENGTH),
            is_active=is_active,
            created_by=created_by,
            created_at=created_at,
        )
        return cls(snapshot)

    @classmethod
    def from_snapshot(cls, snapshot: RiskSnapshot) -> "Risk":
        """Rehydrate a stored risk."""
        return cls(snapshot)

    def to_snapshot(self) -> RiskSnapshot:
        """Capture the current state as an immutable snapshot."""
        return RiskSnapshot(
            id=self._id,
            name=self._name.value,
            description=self._description,
            category=self._category,
            status=self._status,
            inherent_impact=self._inherent_impact,
            inherent_likelihood=self._inherent_likelihood,
            inherent_risk_score=self._inherent_risk_score,
            residual_impact=self._residual_impact,
            residual_likelihood=self._residual_likelihood,
            residual_risk_score=self._residual_risk_score,
            owner=self._owner,
            related_control_ids=tuple(self._related_control_ids),
            related_asset_ids=tuple(self._related_asset_ids),
            review_cadence=self._review_cadence,
            tags=tuple(self._tags),
            is_active=self._is_active,
            created_by=self._created_by,
            created_at=self._created_at,
            updated_by=self._updated_by,
            updated_at=self._updated_at,
            version=self._version,
        )

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> RiskName:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def category(self) -> RiskCategory:
        return self._category

    @property
    def status(self) -> RiskStatus:
        return self._status

    @property
    def inherent_impact(self) -> RiskImpact:
        return self._inherent_impact

    @property
    def inherent_likelihood(self) -> RiskLikelihood:
        return self._inherent_likelihood

    @property
    def inherent_risk_score(self) -> RiskScore:
        return self._inherent_risk_score

    @property
    def residual_impact(self) -> RiskImpact | None:
        return self._residual_impact

    @property
    def residual_likelihood(self) -> RiskLikelihood | None:
        return self._residual_likelihood

    @property
    def residual_risk_score(self) -> RiskScore | None:
        return self._residual_risk_score

    @property
    def owner(self) -> RiskOwner | None:
        return self._owner

    @property
    def related_control_ids(self) -> tuple[str, ...]:
        return tuple(self._related_control_ids)

    @property
    def related_asset_ids(self) -> tuple[str, ...]:
        return tuple(self._related_asset_ids)

    @property
    def review_cadence(self) -> ReviewCadence | None:
        return self._review_cadence

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(self._tags)

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def created_by(self) -> str:
        return self._created_by

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_by(self) -> str | None:
        return self._updated_by

    @property
    def updated_at(self) -> datetime | None:
        return self._updated_at

    @property
    def version(self) -> int:
        """Optimistic concurrency token; 0 until the first save."""
        return self._version

    def is_review_due(self, as_of: datetime) -> bool:
        """Check whether the risk is due for review."""
        if self._review_cadence is None:
            return False
        return self._review_cadence.is_review_due(as_of)

    def get_risk_reduction_percentage(self) -> int | None:
        """Percentage by which treatment reduced the risk score.

        Returns:
            Rounded reduction from inherent to residual score, or None when
            no residual assessment exists
        """
        if self._residual_risk_score is None:
            return None

        inherent = self._inherent_risk_score.value
        residual = self._residual_risk_score.value
        if inherent == 0:
            return 0

        reduction = (inherent - residual) / inherent * 100
        # Halves round up, toward positive infinity
        return math.floor(reduction + 0.5)

    # =========================================================================
    # Assessment and status
    # =========================================================================

    def update_inherent_risk(
        self,
        impact: RiskImpact | str,
        likelihood: RiskLikelihood | str,
        user_id: str,
        at: datetime,
    ) -> None:
        """Re-rate the inherent risk.

        A risk that is still IDENTIFIED becomes ASSESSED; later statuses
        are left alone.
        """
        impact = coerce_enum(RiskImpact, impact, "inherent_impact")
        likelihood = coerce_enum(RiskLikelihood, likelihood, "inherent_likelihood")
        score = calculate(impact, likelihood)

        self._inherent_impact = impact
        self._inherent_likelihood = likelihood
        self._inherent_risk_score = score
        if self._status == RiskStatus.IDENTIFIED:
            self._status = RiskStatus.ASSESSED
        self._touch(user_id, at)

    def update_residual_risk(
        self,
        impact: RiskImpact | str,
        likelihood: RiskLikelihood | str,
        user_id: str,
        at: datetime,
    ) -> None:
        """Record the post-treatment assessment. Status is unchanged."""
        impact = coerce_enum(RiskImpact, impact, "residual_impact")
        likelihood = coerce_enum(RiskLikelihood, likelihood, "residual_likelihood")
        score = calculate(impact, likelihood)

        self._residual_impact = impact
        self._residual_likelihood = likelihood
        self._residual_risk_score = score
        self._touch(user_id, at)

    def can_transition_to(self, status: RiskStatus, *, enforce_table: bool = True) -> bool:
        """Check whether ``update_status`` would accept ``status``."""
        if status == RiskStatus.CLOSED and self._residual_risk_score is None:
            return False
        return not enforce_table or can_transition(self._status, status)

    def update_status(
        self,
        status: RiskStatus | str,
        user_id: str,
        at: datetime,
        *,
        enforce_table: bool = True,
    ) -> None:
        """Move the risk to a new status.

        Args:
            status: Target status
            user_id: Acting user
            at: Time of the change
            enforce_table: Reject moves missing from the transition table

        Raises:
            IllegalTransitionError: If closing without a residual assessment
                or the move is not allowed from the current status
        """
        status = coerce_enum(RiskStatus, status, "status")
        if status == RiskStatus.CLOSED:
            self._require_residual_assessment()
        if enforce_table and not can_transition(self._status, status):
            raise IllegalTransitionError(
                f"Cannot change risk status from {self._status.value} to {status.value}",
                entity="Risk",
                current=self._status,
                requested=status,
            )

        self._status = status
        self._touch(user_id, at)

    def close_risk(self, user_id: str, at: datetime, *, enforce_table: bool = True) -> None:
        """Close the risk. Requires a residual assessment."""
        self.update_status(RiskStatus.CLOSED, user_id, at, enforce_table=enforce_table)

    # =========================================================================
    # Descriptive fields
    # =========================================================================

    def update_description(self, description: str, user_id: str, at: datetime) -> None:
        _validate_description(description)
        self._description = description
        self._touch(user_id, at)

    def assign_owner(self, owner: RiskOwner, user_id: str, at: datetime) -> None:
        self._owner = owner
        self._touch(user_id, at)

    def set_review_cadence(self, cadence: ReviewCadence, user_id: str, at: datetime) -> None:
        self._review_cadence = cadence
        self._touch(user_id, at)

    def mark_reviewed(self, review_date: datetime, user_id: str, at: datetime) -> None:
        """Record a completed review and schedule the next one.

        Raises:
            IllegalTransitionError: If no review cadence is set
        """
        if self._review_cadence is None:
            raise IllegalTransitionError(
                "Review period must be set before marking as reviewed",
                entity="Risk",
                requested="mark_reviewed",
            )
        self._review_cadence = self._review_cadence.mark_reviewed(review_date)
        self._touch(user_id, at)

    def update_tags(self, tags: Iterable[str] | None, user_id: str, at: datetime) -> None:
        """Replace the tag set. Duplicates are dropped; None clears all tags."""
        self._tags = list(unique_ids(tags, "tags", TAG_MAX_LENGTH))
        self._touch(user_id, at)

    # =========================================================================
    # Links
    # =========================================================================

    def link_control(self, control_id: str, user_id: str, at: datetime) -> None:
        _link(self._related_control_ids, control_id, "control")
        self._touch(user_id, at)

    def unlink_control(self, control_id: str, user_id: str, at: datetime) -> None:
        _unlink(self._related_control_ids, control_id, "control")
        self._touch(user_id, at)

    def link_asset(self, asset_id: str, user_id: str, at: datetime) -> None:
        if asset_id and asset_id == self._id:
            raise IllegalTransitionError(
                "A risk cannot be linked to itself as an asset",
                entity="Risk",
                current=asset_id,
                requested="link_asset",
            )
        _link(self._related_asset_ids, asset_id, "asset")
        self._touch(user_id, at)

    def unlink_asset(self, asset_id: str, user_id: str, at: datetime) -> None:
        _unlink(self._related_asset_ids, asset_id, "asset")
        self._touch(user_id, at)

    # =========================================================================
    # Activation
    # =========================================================================

    def activate(self, user_id: str, at: datetime) -> None:
        self._is_active = True
        self._touch(user_id, at)

    def deactivate(self, user_id: str, at: datetime) -> None:
        self._is_active = False
        self._touch(user_id, at)

    # =========================================================================
    # Persistence hooks
    # =========================================================================

    def mark_persisted(self, version: int) -> None:
        """Record the version assigned by the gateway after a save."""
        self._version = version

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_residual_assessment(self) -> None:
        if self._residual_risk_score is None:
            raise IllegalTransitionError(
                "Cannot close a risk without residual risk assessment",
                entity="Risk",
                current=self._status,
                requested=RiskStatus.CLOSED,
            )

    def _touch(self, user_id: str, at: datetime) -> None:
        self._updated_by = user_id
        self._updated_at = at

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Risk):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return f"<Risk(id={self._id}, status={self._status.value}, score={self._inherent_risk_score.value})>"


def _validate_description(description: str) -> None:
    if not description or not description.strip():
        raise ValidationError("description", "Risk description is required")
    if len(description) > RISK_DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            "description",
            f"Risk description cannot exceed {RISK_DESCRIPTION_MAX_LENGTH} characters",
        )


def _link(linked: list[str], target_id: str, kind: str) -> None:
    if not target_id:
        raise ValidationError(f"{kind}_id", f"{kind.capitalize()} ID is required")
    check_length(target_id, f"{kind}_id", REFERENCE_ID_MAX_LENGTH)
    if target_id in linked:
        raise IllegalTransitionError(
            f"Risk is already linked to {kind} {target_id}",
            entity="Risk",
            current=target_id,
            requested=f"link_{kind}",
        )
    linked.append(target_id)


def _unlink(linked: list[str], target_id: str, kind: str) -> None:
    if target_id not in linked:
        raise IllegalTransitionError(
            f"Risk is not linked to {kind} {target_id}",
            entity="Risk",
            current=target_id,
            requested=f"unlink_{kind}",
        )
    linked.remove(target_id)
