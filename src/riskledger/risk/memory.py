"""In-memory persistence gateway.

Stores immutable snapshots, so aggregates handed out by ``find_*`` are
independent copies and changes only become visible after a save, exactly
as with a database. Used by the test suite and for local development.
"""

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import TypeVar

from riskledger.core.clock import Clock, SystemClock
from riskledger.core.exceptions import ConcurrencyConflictError
from riskledger.core.logging import get_logger
from riskledger.risk.gateway import Pagination, RiskFilter, TreatmentFilter
from riskledger.risk.risk import Risk, RiskSnapshot
from riskledger.risk.treatment import Treatment, TreatmentSnapshot

logger = get_logger(__name__)

T = TypeVar("T")


class InMemoryRiskGateway:
    """Dictionary-backed implementation of ``RiskGateway``."""

    def __init__(self, clock: Clock | None = None):
        """Initialize an empty store.

        Args:
            clock: Time source for review-due and overdue predicates
        """
        self._clock = clock or SystemClock()
        self._risks: dict[str, RiskSnapshot] = {}
        self._treatments: dict[str, TreatmentSnapshot] = {}
        self._transaction_depth = 0

    # =========================================================================
    # Lookups
    # =========================================================================

    async def find_risk_by_id(self, risk_id: str) -> Risk | None:
        snapshot = self._risks.get(risk_id)
        return Risk.from_snapshot(snapshot) if snapshot is not None else None

    async def find_treatment_by_id(self, treatment_id: str) -> Treatment | None:
        snapshot = self._treatments.get(treatment_id)
        return Treatment.from_snapshot(snapshot) if snapshot is not None else None

    async def find_treatments_by_risk_id(
        self, risk_id: str, *, active_only: bool = False
    ) -> list[Treatment]:
        return [
            Treatment.from_snapshot(snapshot)
            for snapshot in self._treatments.values()
            if snapshot.risk_id == risk_id and (snapshot.is_active or not active_only)
        ]

    # =========================================================================
    # Saves
    # =========================================================================

    async def save_risk(self, risk: Risk) -> None:
        stored = self._risks.get(risk.id)
        new_version = _check_version("Risk", risk.id, risk.version, stored)
        self._risks[risk.id] = risk.to_snapshot().model_copy(update={"version": new_version})
        risk.mark_persisted(new_version)
        logger.debug("risk_saved", risk_id=risk.id, version=new_version)

    async def save_treatment(self, treatment: Treatment) -> None:
        stored = self._treatments.get(treatment.id)
        new_version = _check_version("Treatment", treatment.id, treatment.version, stored)
        self._treatments[treatment.id] = treatment.to_snapshot().model_copy(
            update={"version": new_version}
        )
        treatment.mark_persisted(new_version)
        logger.debug("treatment_saved", treatment_id=treatment.id, version=new_version)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Restore the previous contents if the block raises.

        Nested calls join the outermost transaction.
        """
        if self._transaction_depth:
            self._transaction_depth += 1
            try:
                yield
            finally:
                self._transaction_depth -= 1
            return

        risks = dict(self._risks)
        treatments = dict(self._treatments)
        self._transaction_depth = 1
        try:
            yield
        except BaseException:
            self._risks = risks
            self._treatments = treatments
            logger.debug("transaction_rolled_back")
            raise
        finally:
            self._transaction_depth = 0

    # =========================================================================
    # Queries
    # =========================================================================

    async def find_risks(self, filters: RiskFilter | None = None) -> list[Risk]:
        filters = filters or RiskFilter()
        matches = sorted(
            (s for s in self._risks.values() if self._risk_matches(s, filters)),
            key=_creation_order,
        )
        return [Risk.from_snapshot(s) for s in _paginate(matches, filters)]

    async def find_treatments(self, filters: TreatmentFilter | None = None) -> list[Treatment]:
        filters = filters or TreatmentFilter()
        matches = sorted(
            (s for s in self._treatments.values() if self._treatment_matches(s, filters)),
            key=_creation_order,
        )
        return [Treatment.from_snapshot(s) for s in _paginate(matches, filters)]

    async def count_risks(self, filters: RiskFilter | None = None) -> int:
        filters = filters or RiskFilter()
        return sum(1 for s in self._risks.values() if self._risk_matches(s, filters))

    async def count_treatments(self, filters: TreatmentFilter | None = None) -> int:
        filters = filters or TreatmentFilter()
        return sum(1 for s in self._treatments.values() if self._treatment_matches(s, filters))

    def _risk_matches(self, snapshot: RiskSnapshot, filters: RiskFilter) -> bool:
        if filters.categories and snapshot.category not in filters.categories:
            return False
        if filters.statuses and snapshot.status not in filters.statuses:
            return False
        if filters.severities and snapshot.inherent_risk_score.severity not in filters.severities:
            return False
        if filters.owner_id is not None and (
            snapshot.owner is None or snapshot.owner.user_id != filters.owner_id
        ):
            return False
        if filters.control_id is not None and filters.control_id not in snapshot.related_control_ids:
            return False
        if filters.asset_id is not None and filters.asset_id not in snapshot.related_asset_ids:
            return False
        if filters.tags and not set(filters.tags) & set(snapshot.tags):
            return False
        if filters.review_due is not None:
            cadence = snapshot.review_cadence
            due = cadence is not None and cadence.is_review_due(self._clock.now())
            if due != filters.review_due:
                return False
        if filters.active is not None and snapshot.is_active != filters.active:
            return False
        return True

    def _treatment_matches(self, snapshot: TreatmentSnapshot, filters: TreatmentFilter) -> bool:
        if filters.risk_id is not None and snapshot.risk_id != filters.risk_id:
            return False
        if filters.statuses and snapshot.status not in filters.statuses:
            return False
        if filters.assignee is not None and snapshot.assignee != filters.assignee:
            return False
        if filters.control_id is not None and filters.control_id not in snapshot.related_control_ids:
            return False
        if filters.overdue is not None:
            overdue = Treatment.from_snapshot(snapshot).is_overdue(self._clock.now())
            if overdue != filters.overdue:
                return False
        if filters.active is not None and snapshot.is_active != filters.active:
            return False
        return True

    def clear(self) -> None:
        """Drop all stored records."""
        self._risks.clear()
        self._treatments.clear()


def _check_version(
    entity: str,
    entity_id: str,
    version: int,
    stored: RiskSnapshot | TreatmentSnapshot | None,
) -> int:
    """Return the next version or raise on a stale save."""
    stored_version = stored.version if stored is not None else 0
    if version != stored_version:
        raise ConcurrencyConflictError(
            entity,
            entity_id,
            expected_version=version,
            actual_version=stored.version if stored is not None else None,
        )
    return stored_version + 1


def _creation_order(snapshot: RiskSnapshot | TreatmentSnapshot) -> tuple[datetime, str]:
    return snapshot.created_at, snapshot.id


def _paginate(items: Iterable[T], pagination: Pagination) -> list[T]:
    items = list(items)
    if not pagination.is_paginated:
        return items
    start = pagination.offset
    return items[start : start + pagination.page_size]  # type: ignore[operator]
