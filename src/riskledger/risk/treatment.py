"""Treatment aggregate: one planned response to a risk.

Treatments reference their risk by ``risk_id`` and are loaded separately;
a risk never embeds its treatments.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import assert_never

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from riskledger.core.exceptions import IllegalTransitionError, ValidationError
from riskledger.risk.risk import (
    REFERENCE_ID_MAX_LENGTH,
    check_length,
    coerce_enum,
    unique_ids,
)
from riskledger.risk.types import (
    CLOSED_TREATMENT_STATUSES,
    COMPLETED_TREATMENT_STATUSES,
    TreatmentStatus,
    TreatmentType,
)

TREATMENT_NAME_MAX_LENGTH = 200
TREATMENT_DESCRIPTION_MAX_LENGTH = 1000
# Stored as NUMERIC(18, 2)
COST_QUANTUM = Decimal("0.01")
COST_LIMIT = Decimal(10) ** 16


def progress_for_status(status: TreatmentStatus) -> int:
    """Fixed progress percentage for each treatment status."""
    match status:
        case TreatmentStatus.PLANNED:
            return 10
        case TreatmentStatus.IN_PROGRESS:
            return 50
        case TreatmentStatus.IMPLEMENTED:
            return 90
        case TreatmentStatus.VERIFIED:
            return 100
        case TreatmentStatus.INEFFECTIVE | TreatmentStatus.CANCELLED:
            return 0
        case _:
            assert_never(status)


class TreatmentSnapshot(BaseModel):
    """Immutable copy of a treatment's state."""

    model_config = ConfigDict(frozen=True)

    id: str
    risk_id: str
    name: str
    description: str
    type: TreatmentType
    status: TreatmentStatus
    due_date: AwareDatetime | None = None
    completed_date: AwareDatetime | None = None
    assignee: str | None = None
    cost: Decimal | None = None
    related_control_ids: tuple[str, ...] = ()
    is_active: bool = True
    created_by: str
    created_at: AwareDatetime
    updated_by: str | None = None
    updated_at: AwareDatetime | None = None
    version: int = Field(default=0, ge=0)


class Treatment:
    """A mitigate/accept/transfer/avoid response to a risk."""

    def __init__(self, snapshot: TreatmentSnapshot):
        self._id = snapshot.id
        self._risk_id = snapshot.risk_id
        self._name = snapshot.name
        self._description = snapshot.description
        self._type = snapshot.type
        self._status = snapshot.status
        self._due_date = snapshot.due_date
        self._completed_date = snapshot.completed_date
        self._assignee = snapshot.assignee
        self._cost = snapshot.cost
        self._related_control_ids = list(snapshot.related_control_ids)
        self._is_active = snapshot.is_active
        self._created_by = snapshot.created_by
        self._created_at = snapshot.created_at
        self._updated_by = snapshot.updated_by
        self._updated_at = snapshot.updated_at
        self._version = snapshot.version

    @classmethod
    def create(
        cls,
        *,
        treatment_id: str,
        risk_id: str,
        name: str,
        description: str,
        type: TreatmentType | str,
        created_by: str,
        created_at: datetime,
        status: TreatmentStatus | str | None = None,
        due_date: datetime | None = None,
        assignee: str | None = None,
        cost: Decimal | int | float | None = None,
        related_control_ids: Iterable[str] | None = None,
        is_active: bool = True,
    ) -> "Treatment":
        """Create a new treatment.

        A treatment created directly as IMPLEMENTED or VERIFIED is considered
        completed at ``created_at``.

        Raises:
            ValidationError: If any field is missing or out of range
        """
        if not treatment_id:
            raise ValidationError("id", "Treatment ID is required")
        if not risk_id:
            raise ValidationError("risk_id", "Risk ID is required")
        _validate_name(name)
        _validate_description(description)
        treatment_type = coerce_enum(TreatmentType, type, "type")
        if not created_by:
            raise ValidationError("created_by", "Created by user ID is required")

        initial_status = (
            coerce_enum(TreatmentStatus, status, "status")
            if status is not None
            else TreatmentStatus.PLANNED
        )

        snapshot = TreatmentSnapshot(
            id=treatment_id,
            risk_id=risk_id,
            name=name,
            description=description,
            type=treatment_type,
            status=initial_status,
            due_date=_validate_due_date(due_date),
            completed_date=created_at if initial_status in COMPLETED_TREATMENT_STATUSES else None,
            assignee=assignee or None,
            cost=_validate_cost(cost),
            related_control_ids=unique_ids(related_control_ids, "related_control_ids"),
            is_active=is_active,
            created_by=created_by,
            created_at=created_at,
        )
        return cls(snapshot)

    @classmethod
    def from_snapshot(cls, snapshot: TreatmentSnapshot) -> "Treatment":
        """Rehydrate a stored treatment."""
        return cls(snapshot)

    def to_snapshot(self) -> TreatmentSnapshot:
        """Capture the current state as an immutable snapshot."""
        return TreatmentSnapshot(
            id=self._id,
            risk_id=self._risk_id,
            name=self._name,
            description=self._description,
            type=self._type,
            status=self._status,
            due_date=self._due_date,
            completed_date=self._completed_date,
            assignee=self._assignee,
            cost=self._cost,
            related_control_ids=tuple(self._related_control_ids),
            is_active=self._is_active,
            created_by=self._created_by,
            created_at=self._created_at,
            updated_by=self._updated_by,
            updated_at=self._updated_at,
            version=self._version,
        )

    @property
    def id(self) -> str:
        return self._id

    @property
    def risk_id(self) -> str:
        return self._risk_id

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def type(self) -> TreatmentType:
        return self._type

    @property
    def status(self) -> TreatmentStatus:
        return self._status

    @property
    def due_date(self) -> datetime | None:
        return self._due_date

    @property
    def completed_date(self) -> datetime | None:
        """When the treatment was first implemented or verified."""
        return self._completed_date

    @property
    def assignee(self) -> str | None:
        return self._assignee

    @property
    def cost(self) -> Decimal | None:
        return self._cost

    @property
    def related_control_ids(self) -> tuple[str, ...]:
        return tuple(self._related_control_ids)

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
        return self._version

    def is_overdue(self, as_of: datetime) -> bool:
        """Check whether the treatment is past its due date and still open."""
        if self._due_date is None:
            return False
        if self._status in CLOSED_TREATMENT_STATUSES:
            return False
        return as_of > self._due_date

    def get_progress_percentage(self) -> int:
        return progress_for_status(self._status)

    def update_status(self, status: TreatmentStatus | str, user_id: str, at: datetime) -> None:
        """Move the treatment to a new status.

        IMPLEMENTED and VERIFIED stamp ``completed_date`` the first time;
        PLANNED and IN_PROGRESS clear it again.
        """
        status = coerce_enum(TreatmentStatus, status, "status")

        if status in COMPLETED_TREATMENT_STATUSES and self._completed_date is None:
            self._completed_date = at
        if status in (TreatmentStatus.PLANNED, TreatmentStatus.IN_PROGRESS):
            self._completed_date = None

        self._status = status
        self._touch(user_id, at)

    def update_description(self, description: str, user_id: str, at: datetime) -> None:
        _validate_description(description)
        self._description = description
        self._touch(user_id, at)

    def set_due_date(self, due_date: datetime | None, user_id: str, at: datetime) -> None:
        self._due_date = _validate_due_date(due_date)
        self._touch(user_id, at)

    def assign_to(self, assignee_id: str | None, user_id: str, at: datetime) -> None:
        self._assignee = assignee_id or None
        self._touch(user_id, at)

    def set_cost(self, cost: Decimal | int | float | None, user_id: str, at: datetime) -> None:
        self._cost = _validate_cost(cost)
        self._touch(user_id, at)

    def link_control(self, control_id: str, user_id: str, at: datetime) -> None:
        if not control_id:
            raise ValidationError("control_id", "Control ID is required")
        check_length(control_id, "control_id", REFERENCE_ID_MAX_LENGTH)
        if control_id in self._related_control_ids:
            raise IllegalTransitionError(
                f"Treatment is already linked to control {control_id}",
                entity="Treatment",
                current=control_id,
                requested="link_control",
            )
        self._related_control_ids.append(control_id)
        self._touch(user_id, at)

    def unlink_control(self, control_id: str, user_id: str, at: datetime) -> None:
        if control_id not in self._related_control_ids:
            raise IllegalTransitionError(
                f"Treatment is not linked to control {control_id}",
                entity="Treatment",
                current=control_id,
                requested="unlink_control",
            )
        self._related_control_ids.remove(control_id)
        self._touch(user_id, at)

    def activate(self, user_id: str, at: datetime) -> None:
        self._is_active = True
        self._touch(user_id, at)

    def deactivate(self, user_id: str, at: datetime) -> None:
        self._is_active = False
        self._touch(user_id, at)

    def mark_persisted(self, version: int) -> None:
        """Record the version assigned by the gateway after a save."""
        self._version = version

    def _touch(self, user_id: str, at: datetime) -> None:
        self._updated_by = user_id
        self._updated_at = at

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Treatment):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return f"<Treatment(id={self._id}, risk={self._risk_id}, {self._type.value}/{self._status.value})>"


def _validate_name(name: str) -> None:
    if not name or not name.strip():
        raise ValidationError("name", "Treatment name is required")
    if len(name) > TREATMENT_NAME_MAX_LENGTH:
        raise ValidationError(
            "name", f"Treatment name cannot exceed {TREATMENT_NAME_MAX_LENGTH} characters"
        )


def _validate_description(description: str) -> None:
    if not description or not description.strip():
        raise ValidationError("description", "Treatment description is required")
    if len(description) > TREATMENT_DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            "description",
            f"Treatment description cannot exceed {TREATMENT_DESCRIPTION_MAX_LENGTH} characters",
        )


def _validate_cost(cost: Decimal | int | float | None) -> Decimal | None:
    if cost is None:
        return None
    if isinstance(cost, bool):
        raise ValidationError("cost", "Cost must be a number")
    try:
        value = cost if isinstance(cost, Decimal) else Decimal(str(cost))
    except InvalidOperation:
        raise ValidationError("cost", "Cost must be a number") from None
    if not value.is_finite():
        raise ValidationError("cost", "Cost must be a finite number")
    if value < 0:
        raise ValidationError("cost", "Cost cannot be negative")
    if value >= COST_LIMIT:
        raise ValidationError("cost", f"Cost must be less than {COST_LIMIT:,}")
    if value != value.quantize(COST_QUANTUM):
        raise ValidationError("cost", "Cost cannot have more than 2 decimal places")
    return value.quantize(COST_QUANTUM)


def _validate_due_date(due_date: datetime | None) -> datetime | None:
    if due_date is not None and due_date.tzinfo is None:
        raise ValidationError("due_date", "Due date must be timezone-aware")
    return due_date
