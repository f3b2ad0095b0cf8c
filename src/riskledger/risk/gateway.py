"""Persistence gateway interface for risks and treatments.

The lifecycle service depends only on this protocol. Two implementations
ship with the package:

- ``riskledger.risk.memory.InMemoryRiskGateway`` for tests and local use
- ``riskledger.db.repositories.risk.SqlAlchemyRiskGateway`` for databases

Gateways evaluate every filter predicate themselves, including the
time-dependent ``review_due`` and ``overdue`` ones, using their own clock.
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, model_validator

from riskledger.risk.risk import Risk
from riskledger.risk.treatment import Treatment
from riskledger.risk.types import (
    RiskCategory,
    RiskSeverity,
    RiskStatus,
    TreatmentStatus,
)


class Pagination(BaseModel):
    """Optional 1-based page selection shared by both filters."""

    model_config = ConfigDict(frozen=True)

    page_size: int | None = Field(default=None, ge=1)
    page_number: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def validate_page_pair(self) -> "Pagination":
        if (self.page_size is None) != (self.page_number is None):
            raise ValueError("page_size and page_number must be provided together")
        return self

    @property
    def is_paginated(self) -> bool:
        return self.page_size is not None and self.page_number is not None

    @property
    def offset(self) -> int:
        if not self.is_paginated:
            return 0
        return (self.page_number - 1) * self.page_size  # type: ignore[operator]


class RiskFilter(Pagination):
    """Predicates for risk queries. Unset fields do not filter."""

    categories: tuple[RiskCategory, ...] = ()
    statuses: tuple[RiskStatus, ...] = ()
    severities: tuple[RiskSeverity, ...] = ()
    """Matched against the inherent risk score's severity."""

    owner_id: str | None = None
    control_id: str | None = None
    asset_id: str | None = None
    tags: tuple[str, ...] = ()
    """A risk matches when it carries any of these tags."""

    review_due: bool | None = None
    active: bool | None = None


class TreatmentFilter(Pagination):
    """Predicates for treatment queries. Unset fields do not filter."""

    risk_id: str | None = None
    statuses: tuple[TreatmentStatus, ...] = ()
    assignee: str | None = None
    control_id: str | None = None
    overdue: bool | None = None
    active: bool | None = None


@runtime_checkable
class RiskGateway(Protocol):
    """Storage operations the lifecycle service needs.

    ``save_risk`` and ``save_treatment`` are upserts keyed by identity. They
    compare the aggregate's ``version`` with the stored one, raise
    ``ConcurrencyConflictError`` on mismatch and call ``mark_persisted`` with
    the new version on success.

    ``transaction()`` groups several saves so they either all take effect
    or none do.
    """

    async def find_risk_by_id(self, risk_id: str) -> Risk | None: ...

    async def find_treatment_by_id(self, treatment_id: str) -> Treatment | None: ...

    async def find_treatments_by_risk_id(
        self, risk_id: str, *, active_only: bool = False
    ) -> list[Treatment]: ...

    async def save_risk(self, risk: Risk) -> None: ...

    async def save_treatment(self, treatment: Treatment) -> None: ...

    async def find_risks(self, filters: RiskFilter | None = None) -> list[Risk]: ...

    async def find_treatments(self, filters: TreatmentFilter | None = None) -> list[Treatment]: ...

    async def count_risks(self, filters: RiskFilter | None = None) -> int: ...

    async def count_treatments(self, filters: TreatmentFilter | None = None) -> int: ...

    def transaction(self) -> AbstractAsyncContextManager[None]: ...
