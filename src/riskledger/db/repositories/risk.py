"""SQLAlchemy implementation of the risk persistence gateway.

Usage:
    async with get_async_session(factory) as session:
        gateway = SqlAlchemyRiskGateway(session)
        service = RiskLifecycleService(gateway)
"""

from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy import and_, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from riskledger.core.clock import Clock, SystemClock
from riskledger.core.exceptions import ConcurrencyConflictError
from riskledger.core.logging import get_logger
from riskledger.db.models.risk import (
    RiskAssetLink,
    RiskControlLink,
    RiskModel,
    RiskTag,
    TreatmentControlLink,
    TreatmentModel,
)
from riskledger.db.repositories.base import BaseRepository
from riskledger.risk.gateway import Pagination, RiskFilter, TreatmentFilter
from riskledger.risk.review import ReviewCadence
from riskledger.risk.risk import Risk, RiskSnapshot
from riskledger.risk.scoring import calculate
from riskledger.risk.treatment import Treatment, TreatmentSnapshot
from riskledger.risk.types import CLOSED_TREATMENT_STATUSES, RiskImpact, RiskLikelihood
from riskledger.risk.values import RiskOwner

logger = get_logger(__name__)

LinkType = TypeVar("LinkType", RiskControlLink, RiskAssetLink, RiskTag, TreatmentControlLink)


class SqlAlchemyRiskGateway(BaseRepository):
    """``RiskGateway`` backed by an async SQLAlchemy session.

    Every filter, including ``review_due`` and ``overdue``, is evaluated in
    SQL against the gateway's clock, so counts and pages stay consistent.
    """

    def __init__(self, db: AsyncSession, clock: Clock | None = None):
        """Initialize the gateway.

        Args:
            db: Async SQLAlchemy session
            clock: Time source for review-due and overdue predicates
        """
        super().__init__(db)
        self._clock = clock or SystemClock()

    # =========================================================================
    # Lookups
    # =========================================================================

    async def find_risk_by_id(self, risk_id: str) -> Risk | None:
        row = await self.fetch_one(RiskModel, risk_id)
        return _risk_from_row(row) if row is not None else None

    async def find_treatment_by_id(self, treatment_id: str) -> Treatment | None:
        row = await self.fetch_one(TreatmentModel, treatment_id)
        return _treatment_from_row(row) if row is not None else None

    async def find_treatments_by_risk_id(
        self, risk_id: str, *, active_only: bool = False
    ) -> list[Treatment]:
        return await self.find_treatments(
            TreatmentFilter(risk_id=risk_id, active=True if active_only else None)
        )

    # =========================================================================
    # Saves
    # =========================================================================

    async def save_risk(self, risk: Risk) -> None:
        """Insert or update a risk, checking its version first.

        Raises:
            ConcurrencyConflictError: If the stored version differs
        """
        row = await self.fetch_one(RiskModel, risk.id)
        if row is None:
            _check_new("Risk", risk.id, risk.version)
            row = RiskModel(id=risk.id)
            self.db.add(row)
            new_version = 1
        else:
            _check_stored("Risk", risk.id, risk.version, row.version)
            new_version = row.version + 1

        _apply_risk(row, risk.to_snapshot())
        row.version = new_version

        try:
            await self.persist()
        except StaleDataError:
            raise ConcurrencyConflictError("Risk", risk.id, risk.version, None) from None

        risk.mark_persisted(new_version)
        logger.debug("risk_saved", risk_id=risk.id, version=new_version)

    async def save_treatment(self, treatment: Treatment) -> None:
        """Insert or update a treatment, checking its version first.

        Raises:
            ConcurrencyConflictError: If the stored version differs
        """
        row = await self.fetch_one(TreatmentModel, treatment.id)
        if row is None:
            _check_new("Treatment", treatment.id, treatment.version)
            row = TreatmentModel(id=treatment.id)
            self.db.add(row)
            new_version = 1
        else:
            _check_stored("Treatment", treatment.id, treatment.version, row.version)
            new_version = row.version + 1

        _apply_treatment(row, treatment.to_snapshot())
        row.version = new_version

        try:
            await self.persist()
        except StaleDataError:
            raise ConcurrencyConflictError(
                "Treatment", treatment.id, treatment.version, None
            ) from None

        treatment.mark_persisted(new_version)
        logger.debug("treatment_saved", treatment_id=treatment.id, version=new_version)

    # =========================================================================
    # Queries
    # =========================================================================

    async def find_risks(self, filters: RiskFilter | None = None) -> list[Risk]:
        filters = filters or RiskFilter()
        stmt = (
            select(RiskModel)
            .where(*self._risk_conditions(filters))
            .order_by(RiskModel.created_at, RiskModel.id)
        )
        rows = await self.fetch_all(_paginate(stmt, filters))
        return [_risk_from_row(row) for row in rows]

    async def find_treatments(self, filters: TreatmentFilter | None = None) -> list[Treatment]:
        filters = filters or TreatmentFilter()
        stmt = (
            select(TreatmentModel)
            .where(*self._treatment_conditions(filters))
            .order_by(TreatmentModel.created_at, TreatmentModel.id)
        )
        rows = await self.fetch_all(_paginate(stmt, filters))
        return [_treatment_from_row(row) for row in rows]

    async def count_risks(self, filters: RiskFilter | None = None) -> int:
        return await self.count_where(RiskModel, *self._risk_conditions(filters or RiskFilter()))

    async def count_treatments(self, filters: TreatmentFilter | None = None) -> int:
        return await self.count_where(
            TreatmentModel, *self._treatment_conditions(filters or TreatmentFilter())
        )

    def _risk_conditions(self, filters: RiskFilter) -> list[Any]:
        conditions: list[Any] = []
        if filters.categories:
            conditions.append(RiskModel.category.in_([c.value for c in filters.categories]))
        if filters.statuses:
            conditions.append(RiskModel.status.in_([s.value for s in filters.statuses]))
        if filters.severities:
            conditions.append(
                RiskModel.inherent_severity.in_([s.value for s in filters.severities])
            )
        if filters.owner_id is not None:
            conditions.append(RiskModel.owner_id == filters.owner_id)
        if filters.control_id is not None:
            conditions.append(RiskModel.controls.any(RiskControlLink.control_id == filters.control_id))
        if filters.asset_id is not None:
            conditions.append(RiskModel.assets.any(RiskAssetLink.asset_id == filters.asset_id))
        if filters.tags:
            conditions.append(RiskModel.tags.any(RiskTag.tag.in_(filters.tags)))
        if filters.review_due is not None:
            due = and_(
                RiskModel.next_review_date.is_not(None),
                RiskModel.next_review_date <= self._clock.now(),
            )
            conditions.append(due if filters.review_due else not_(due))
        if filters.active is not None:
            conditions.append(RiskModel.is_active == filters.active)
        return conditions

    def _treatment_conditions(self, filters: TreatmentFilter) -> list[Any]:
        conditions: list[Any] = []
        if filters.risk_id is not None:
            conditions.append(TreatmentModel.risk_id == filters.risk_id)
        if filters.statuses:
            conditions.append(TreatmentModel.status.in_([s.value for s in filters.statuses]))
        if filters.assignee is not None:
            conditions.append(TreatmentModel.assignee == filters.assignee)
        if filters.control_id is not None:
            conditions.append(
                TreatmentModel.controls.any(TreatmentControlLink.control_id == filters.control_id)
            )
        if filters.overdue is not None:
            overdue = and_(
                TreatmentModel.due_date.is_not(None),
                TreatmentModel.due_date < self._clock.now(),
                TreatmentModel.status.not_in([s.value for s in CLOSED_TREATMENT_STATUSES]),
            )
            if filters.overdue:
                conditions.append(overdue)
            else:
                conditions.append(or_(TreatmentModel.due_date.is_(None), not_(overdue)))
        if filters.active is not None:
            conditions.append(TreatmentModel.is_active == filters.active)
        return conditions


# =============================================================================
# Row mapping
# =============================================================================


def _check_new(entity: str, entity_id: str, version: int) -> None:
    if version != 0:
        raise ConcurrencyConflictError(entity, entity_id, version, None)


def _check_stored(entity: str, entity_id: str, version: int, stored_version: int) -> None:
    if version != stored_version:
        raise ConcurrencyConflictError(entity, entity_id, version, stored_version)


def _paginate(stmt, pagination: Pagination):
    if not pagination.is_paginated:
        return stmt
    return stmt.limit(pagination.page_size).offset(pagination.offset)


def _sync_links(
    links: list[LinkType],
    wanted: tuple[str, ...],
    key: Callable[[LinkType], str],
    factory: Callable[[str], LinkType],
) -> None:
    """Make ``links`` match ``wanted`` in order, reusing existing rows."""
    existing = {key(link): link for link in links}
    for link in list(links):
        if key(link) not in wanted:
            links.remove(link)
    for position, value in enumerate(wanted):
        link = existing.get(value)
        if link is None:
            link = factory(value)
            links.append(link)
        link.position = position


def _apply_risk(row: RiskModel, snapshot: RiskSnapshot) -> None:
    row.name = snapshot.name
    row.description = snapshot.description
    row.category = snapshot.category.value
    row.status = snapshot.status.value

    row.inherent_impact = snapshot.inherent_impact.value
    row.inherent_likelihood = snapshot.inherent_likelihood.value
    row.inherent_score = snapshot.inherent_risk_score.value
    row.inherent_severity = snapshot.inherent_risk_score.severity.value
    residual = snapshot.residual_risk_score
    row.residual_impact = snapshot.residual_impact.value if snapshot.residual_impact else None
    row.residual_likelihood = (
        snapshot.residual_likelihood.value if snapshot.residual_likelihood else None
    )
    row.residual_score = residual.value if residual else None
    row.residual_severity = residual.severity.value if residual else None

    owner = snapshot.owner
    row.owner_id = owner.user_id if owner else None
    row.owner_name = owner.name if owner else None
    row.owner_department = owner.department if owner else None
    row.owner_assigned_at = owner.assigned_at if owner else None

    cadence = snapshot.review_cadence
    row.review_period_months = cadence.months if cadence else None
    row.last_reviewed = cadence.last_reviewed if cadence else None
    row.next_review_date = cadence.next_review_date if cadence else None

    row.is_active = snapshot.is_active
    row.created_by = snapshot.created_by
    row.created_at = snapshot.created_at
    row.updated_by = snapshot.updated_by
    row.updated_at = snapshot.updated_at

    _sync_links(
        row.controls,
        snapshot.related_control_ids,
        key=lambda link: link.control_id,
        factory=lambda value: RiskControlLink(control_id=value, position=0),
    )
    _sync_links(
        row.assets,
        snapshot.related_asset_ids,
        key=lambda link: link.asset_id,
        factory=lambda value: RiskAssetLink(asset_id=value, position=0),
    )
    _sync_links(
        row.tags,
        snapshot.tags,
        key=lambda link: link.tag,
        factory=lambda value: RiskTag(tag=value, position=0),
    )


def _risk_from_row(row: RiskModel) -> Risk:
    inherent_impact = RiskImpact(row.inherent_impact)
    inherent_likelihood = RiskLikelihood(row.inherent_likelihood)
    residual_impact = RiskImpact(row.residual_impact) if row.residual_impact else None
    residual_likelihood = (
        RiskLikelihood(row.residual_likelihood) if row.residual_likelihood else None
    )

    owner = None
    if row.owner_id is not None:
        owner = RiskOwner(
            user_id=row.owner_id,
            name=row.owner_name or "",
            department=row.owner_department or "",
            assigned_at=row.owner_assigned_at or row.created_at,
        )

    cadence = None
    if row.review_period_months is not None:
        cadence = ReviewCadence(
            months=row.review_period_months,
            last_reviewed=row.last_reviewed,
            next_review_date=row.next_review_date,
        )

    snapshot = RiskSnapshot(
        id=row.id,
        name=row.name,
        description=row.description,
        category=row.category,
        status=row.status,
        inherent_impact=inherent_impact,
        inherent_likelihood=inherent_likelihood,
        inherent_risk_score=calculate(inherent_impact, inherent_likelihood),
        residual_impact=residual_impact,
        residual_likelihood=residual_likelihood,
        residual_risk_score=(
            calculate(residual_impact, residual_likelihood)
            if residual_impact is not None and residual_likelihood is not None
            else None
        ),
        owner=owner,
        related_control_ids=tuple(link.control_id for link in row.controls),
        related_asset_ids=tuple(link.asset_id for link in row.assets),
        review_cadence=cadence,
        tags=tuple(link.tag for link in row.tags),
        is_active=row.is_active,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_by=row.updated_by,
        updated_at=row.updated_at,
        version=row.version,
    )
    return Risk.from_snapshot(snapshot)


def _apply_treatment(row: TreatmentModel, snapshot: TreatmentSnapshot) -> None:
    row.risk_id = snapshot.risk_id
    row.name = snapshot.name
    row.description = snapshot.description
    row.type = snapshot.type.value
    row.status = snapshot.status.value
    row.due_date = snapshot.due_date
    row.completed_date = snapshot.completed_date
    row.assignee = snapshot.assignee
    row.cost = snapshot.cost
    row.is_active = snapshot.is_active
    row.created_by = snapshot.created_by
    row.created_at = snapshot.created_at
    row.updated_by = snapshot.updated_by
    row.updated_at = snapshot.updated_at

    _sync_links(
        row.controls,
        snapshot.related_control_ids,
        key=lambda link: link.control_id,
        factory=lambda value: TreatmentControlLink(control_id=value, position=0),
    )


def _treatment_from_row(row: TreatmentModel) -> Treatment:
    snapshot = TreatmentSnapshot(
        id=row.id,
        risk_id=row.risk_id,
        name=row.name,
        description=row.description,
        type=row.type,
        status=row.status,
        due_date=row.due_date,
        completed_date=row.completed_date,
        assignee=row.assignee,
        cost=row.cost,
        related_control_ids=tuple(link.control_id for link in row.controls),
        is_active=row.is_active,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_by=row.updated_by,
        updated_at=row.updated_at,
        version=row.version,
    )
    return Treatment.from_snapshot(snapshot)
