"""Risk lifecycle service.

Coordinates creation and mutation of risks and treatments through a
persistence gateway, and propagates treatment status changes onto the risk
they address:

    treatment type  treatment status           risk status
    --------------  -------------------------  -----------------------------
    MITIGATE        VERIFIED                   MITIGATING, once every active
                                               treatment is VERIFIED or
                                               CANCELLED and a residual score
                                               exists
    ACCEPT          IMPLEMENTED or VERIFIED    ACCEPTED
    TRANSFER        IMPLEMENTED or VERIFIED    TRANSFERRED
    AVOID           IMPLEMENTED or VERIFIED    AVOIDED

A fully mitigated risk stays MITIGATING; closing it is an explicit
decision (``close_risk``).

Every public operation returns a ``Result``. Domain rule violations come
back as failures; storage errors propagate to the caller untouched.

Usage:
    service = RiskLifecycleService(gateway)
    result = await service.create_risk(
        "Vendor outage", "Primary payment vendor unavailable",
        RiskCategory.THIRD_PARTY, RiskImpact.MAJOR, RiskLikelihood.POSSIBLE,
        creator_id="u-1",
    )
    if result.is_success:
        risk = result.value
"""

import functools
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any, Concatenate, Final, ParamSpec, TypeVar, assert_never

from pydantic import AwareDatetime, BaseModel, Field
from uuid_utils import uuid7

from riskledger.config.settings import Settings, get_settings
from riskledger.core.clock import Clock, SystemClock
from riskledger.core.exceptions import DomainError, NotFoundError, ValidationError
from riskledger.core.logging import LogContext, get_logger, log_domain_failure
from riskledger.core.result import Result
from riskledger.risk.gateway import RiskFilter, RiskGateway, TreatmentFilter
from riskledger.risk.review import ReviewCadence
from riskledger.risk.risk import Risk, coerce_enum
from riskledger.risk.statistics import RiskStatistics, compute_risk_statistics
from riskledger.risk.treatment import Treatment
from riskledger.risk.types import (
    COMPLETED_TREATMENT_STATUSES,
    RiskCategory,
    RiskImpact,
    RiskLikelihood,
    RiskStatus,
    TreatmentStatus,
    TreatmentType,
)
from riskledger.risk.values import RiskOwner

logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class _Unset:
    """Marker for optional arguments that were not passed."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset()


class CreateRiskOptions(BaseModel):
    """Optional fields for ``create_risk``."""

    status: RiskStatus | None = None
    residual_impact: RiskImpact | None = None
    residual_likelihood: RiskLikelihood | None = None
    owner_id: str | None = None
    owner_name: str | None = None
    owner_department: str | None = None
    related_control_ids: list[str] = Field(default_factory=list)
    related_asset_ids: list[str] = Field(default_factory=list)
    review_period_months: int | None = None
    """Review interval; falls back to ``Settings.default_review_period_months``."""

    tags: list[str] = Field(default_factory=list)


class CreateTreatmentOptions(BaseModel):
    """Optional fields for ``create_risk_treatment``."""

    status: TreatmentStatus | None = None
    due_date: AwareDatetime | None = None
    assignee: str | None = None
    cost: Decimal | None = None
    related_control_ids: list[str] = Field(default_factory=list)


def domain_operation(
    func: Callable[Concatenate["RiskLifecycleService", P], Awaitable[Result[T]]],
) -> Callable[Concatenate["RiskLifecycleService", P], Awaitable[Result[T]]]:
    """Turn domain errors raised by an operation into failed results.

    Only ``DomainError`` is caught; anything else propagates.
    """

    @functools.wraps(func)
    async def wrapper(
        self: "RiskLifecycleService", *args: P.args, **kwargs: P.kwargs
    ) -> Result[T]:
        with LogContext(operation=func.__name__):
            try:
                return await func(self, *args, **kwargs)
            except DomainError as exc:
                log_domain_failure(logger, func.__name__, exc)
                return Result.fail(exc)

    return wrapper


class RiskLifecycleService:
    """Orchestrates the risk and treatment lifecycle."""

    def __init__(
        self,
        gateway: RiskGateway,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ):
        """Initialize the service.

        Args:
            gateway: Persistence gateway for risks and treatments
            clock: Time source (default: system clock in UTC)
            settings: Application settings (default: cached settings)
        """
        self._gateway = gateway
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()

    @property
    def enforce_transition_table(self) -> bool:
        return self._settings.enforce_transition_table

    # =========================================================================
    # Risk creation and queries
    # =========================================================================

    @domain_operation
    async def create_risk(
        self,
        name: str,
        description: str,
        category: RiskCategory | str,
        inherent_impact: RiskImpact | str,
        inherent_likelihood: RiskLikelihood | str,
        creator_id: str,
        options: CreateRiskOptions | None = None,
    ) -> Result[Risk]:
        """Create and persist a new risk.

        No other records are consulted; linked control and asset IDs are
        stored as given.
        """
        options = options or CreateRiskOptions()
        now = self._clock.now()

        months = options.review_period_months
        if months is None:
            months = self._settings.default_review_period_months
        cadence = ReviewCadence.create(months) if months is not None else None

        owner = None
        if options.owner_id or options.owner_name or options.owner_department:
            owner = RiskOwner.create(
                options.owner_id or "",
                options.owner_name or "",
                options.owner_department or "",
                assigned_at=now,
            )

        risk = Risk.create(
            risk_id=_new_id(),
            name=name,
            description=description,
            category=category,
            inherent_impact=inherent_impact,
            inherent_likelihood=inherent_likelihood,
            created_by=creator_id,
            created_at=now,
            status=options.status,
            residual_impact=options.residual_impact,
            residual_likelihood=options.residual_likelihood,
            owner=owner,
            related_control_ids=options.related_control_ids,
            related_asset_ids=options.related_asset_ids,
            review_cadence=cadence,
            tags=options.tags,
        )
        await self._gateway.save_risk(risk)

        logger.info(
            "risk_created",
            risk_id=risk.id,
            category=risk.category.value,
            score=risk.inherent_risk_score.value,
            severity=risk.inherent_risk_score.severity.value,
            created_by=creator_id,
        )
        return Result.ok(risk)

    @domain_operation
    async def get_risk(self, risk_id: str) -> Result[Risk]:
        return Result.ok(await self._load_risk(risk_id))

    @domain_operation
    async def list_risks(self, filters: RiskFilter | None = None) -> Result[list[Risk]]:
        return Result.ok(await self._gateway.find_risks(filters))

    @domain_operation
    async def get_risks_for_review(self) -> Result[list[Risk]]:
        """Active risks whose next review date has passed."""
        risks = await self._gateway.find_risks(RiskFilter(review_due=True, active=True))
        logger.info("risks_due_for_review", count=len(risks))
        return Result.ok(risks)

    # =========================================================================
    # Risk mutations
    # =========================================================================

    @domain_operation
    async def update_risk_assessment(
        self,
        risk_id: str,
        inherent_impact: RiskImpact | str,
        inherent_likelihood: RiskLikelihood | str,
        residual_impact: RiskImpact | str | None,
        residual_likelihood: RiskLikelihood | str | None,
        actor_id: str,
    ) -> Result[Risk]:
        """Re-rate a risk. The residual rating is applied only when both parts are given.

        A risk still IDENTIFIED becomes ASSESSED.
        """
        if (residual_impact is None) != (residual_likelihood is None):
            raise ValidationError(
                "residual_assessment",
                "Residual impact and likelihood must be provided together",
            )

        def mutate(risk: Risk, now: datetime) -> None:
            risk.update_inherent_risk(inherent_impact, inherent_likelihood, actor_id, now)
            if residual_impact is not None and residual_likelihood is not None:
                risk.update_residual_risk(residual_impact, residual_likelihood, actor_id, now)

        risk = await self._mutate_risk(risk_id, mutate)
        logger.info(
            "risk_assessment_updated",
            risk_id=risk.id,
            status=risk.status.value,
            inherent_score=risk.inherent_risk_score.value,
            residual_score=risk.residual_risk_score.value if risk.residual_risk_score else None,
        )
        return Result.ok(risk)

    @domain_operation
    async def assign_risk_owner(
        self,
        risk_id: str,
        owner_id: str,
        owner_name: str,
        owner_department: str,
        actor_id: str,
    ) -> Result[Risk]:
        def mutate(risk: Risk, now: datetime) -> None:
            owner = RiskOwner.create(owner_id, owner_name, owner_department, assigned_at=now)
            risk.assign_owner(owner, actor_id, now)

        risk = await self._mutate_risk(risk_id, mutate)
        logger.info("risk_owner_assigned", risk_id=risk.id, owner_id=owner_id)
        return Result.ok(risk)

    @domain_operation
    async def set_risk_review_period(self, risk_id: str, months: int, actor_id: str) -> Result[Risk]:
        """Set the review interval.

        An existing last-reviewed date is kept, so the next review date is
        recomputed from it with the new interval.
        """

        def mutate(risk: Risk, now: datetime) -> None:
            last_reviewed = risk.review_cadence.last_reviewed if risk.review_cadence else None
            cadence = ReviewCadence.create(months, last_reviewed=last_reviewed)
            risk.set_review_cadence(cadence, actor_id, now)

        risk = await self._mutate_risk(risk_id, mutate)
        logger.info("risk_review_period_set", risk_id=risk.id, months=months)
        return Result.ok(risk)

    @domain_operation
    async def mark_risk_reviewed(self, risk_id: str, actor_id: str) -> Result[Risk]:
        """Record a review at the current time and schedule the next one."""

        def mutate(risk: Risk, now: datetime) -> None:
            risk.mark_reviewed(now, actor_id, now)

        risk = await self._mutate_risk(risk_id, mutate)
        logger.info(
            "risk_reviewed",
            risk_id=risk.id,
            next_review_date=risk.review_cadence.next_review_date.isoformat()
            if risk.review_cadence and risk.review_cadence.next_review_date
            else None,
        )
        return Result.ok(risk)

    @domain_operation
    async def update_risk_status(
        self, risk_id: str, status: RiskStatus | str, actor_id: str
    ) -> Result[Risk]:
        def mutate(risk: Risk, now: datetime) -> None:
            risk.update_status(status, actor_id, now, enforce_table=self.enforce_transition_table)

        risk = await self._mutate_risk(risk_id, mutate)
        logger.info("risk_status_updated", risk_id=risk.id, status=risk.status.value)
        return Result.ok(risk)

    @domain_operation
    async def close_risk(self, risk_id: str, actor_id: str) -> Result[Risk]:
        """Close a risk. Fails unless a residual assessment exists."""

        def mutate(risk: Risk, now: datetime) -> None:
            risk.close_risk(actor_id, now, enforce_table=self.enforce_transition_table)

        risk = await self._mutate_risk(risk_id, mutate)
        logger.info("risk_closed", risk_id=risk.id)
        return Result.ok(risk)

    @domain_operation
    async def update_risk_description(
        self, risk_id: str, description: str, actor_id: str
    ) -> Result[Risk]:
        risk = await self._mutate_risk(
            risk_id, lambda risk, now: risk.update_description(description, actor_id, now)
        )
        return Result.ok(risk)

    @domain_operation
    async def update_risk_tags(
        self, risk_id: str, tags: Iterable[str] | None, actor_id: str
    ) -> Result[Risk]:
        risk = await self._mutate_risk(
            risk_id, lambda risk, now: risk.update_tags(tags, actor_id, now)
        )
        return Result.ok(risk)

    @domain_operation
    async def link_risk_control(self, risk_id: str, control_id: str, actor_id: str) -> Result[Risk]:
        risk = await self._mutate_risk(
            risk_id, lambda risk, now: risk.link_control(control_id, actor_id, now)
        )
        logger.info("risk_control_linked", risk_id=risk.id, control_id=control_id)
        return Result.ok(risk)

    @domain_operation
    async def unlink_risk_control(
        self, risk_id: str, control_id: str, actor_id: str
    ) -> Result[Risk]:
        risk = await self._mutate_risk(
            risk_id, lambda risk, now: risk.unlink_control(control_id, actor_id, now)
        )
        logger.info("risk_control_unlinked", risk_id=risk.id, control_id=control_id)
        return Result.ok(risk)

    @domain_operation
    async def link_risk_asset(self, risk_id: str, asset_id: str, actor_id: str) -> Result[Risk]:
        risk = await self._mutate_risk(
            risk_id, lambda risk, now: risk.link_asset(asset_id, actor_id, now)
        )
        logger.info("risk_asset_linked", risk_id=risk.id, asset_id=asset_id)
        return Result.ok(risk)

    @domain_operation
    async def unlink_risk_asset(self, risk_id: str, asset_id: str, actor_id: str) -> Result[Risk]:
        risk = await self._mutate_risk(
            risk_id, lambda risk, now: risk.unlink_asset(asset_id, actor_id, now)
        )
        logger.info("risk_asset_unlinked", risk_id=risk.id, asset_id=asset_id)
        return Result.ok(risk)

    @domain_operation
    async def deactivate_risk(self, risk_id: str, actor_id: str) -> Result[Risk]:
        """Retire a risk. Risks are never deleted."""
        risk = await self._mutate_risk(risk_id, lambda risk, now: risk.deactivate(actor_id, now))
        logger.info("risk_deactivated", risk_id=risk.id)
        return Result.ok(risk)

    @domain_operation
    async def activate_risk(self, risk_id: str, actor_id: str) -> Result[Risk]:
        risk = await self._mutate_risk(risk_id, lambda risk, now: risk.activate(actor_id, now))
        logger.info("risk_activated", risk_id=risk.id)
        return Result.ok(risk)

    # =========================================================================
    # Treatments
    # =========================================================================

    @domain_operation
    async def create_risk_treatment(
        self,
        risk_id: str,
        name: str,
        description: str,
        type: TreatmentType | str,
        creator_id: str,
        options: CreateTreatmentOptions | None = None,
    ) -> Result[Treatment]:
        """Create a treatment for an existing risk.

        A risk that is still IDENTIFIED or ASSESSED moves to MITIGATING:
        planning any response means work on the risk has begun.

        Raises (as failed results):
            NotFoundError: If the risk does not exist
            ValidationError: If a treatment field is invalid
        """
        options = options or CreateTreatmentOptions()
        risk = await self._load_risk(risk_id)
        now = self._clock.now()

        treatment = Treatment.create(
            treatment_id=_new_id(),
            risk_id=risk.id,
            name=name,
            description=description,
            type=type,
            created_by=creator_id,
            created_at=now,
            status=options.status,
            due_date=options.due_date,
            assignee=options.assignee,
            cost=options.cost,
            related_control_ids=options.related_control_ids,
        )

        async with self._gateway.transaction():
            await self._gateway.save_treatment(treatment)
            if risk.status in (RiskStatus.IDENTIFIED, RiskStatus.ASSESSED):
                risk.update_status(
                    RiskStatus.MITIGATING,
                    creator_id,
                    now,
                    enforce_table=self.enforce_transition_table,
                )
                await self._gateway.save_risk(risk)
                logger.info("risk_status_propagated", risk_id=risk.id, status=risk.status.value)

        logger.info(
            "treatment_created",
            treatment_id=treatment.id,
            risk_id=risk.id,
            treatment_type=treatment.type.value,
            created_by=creator_id,
        )
        return Result.ok(treatment)

    @domain_operation
    async def get_treatment(self, treatment_id: str) -> Result[Treatment]:
        return Result.ok(await self._load_treatment(treatment_id))

    @domain_operation
    async def list_treatments_for_risk(
        self, risk_id: str, active_only: bool = True
    ) -> Result[list[Treatment]]:
        await self._load_risk(risk_id)
        treatments = await self._gateway.find_treatments_by_risk_id(risk_id, active_only=active_only)
        return Result.ok(treatments)

    @domain_operation
    async def get_overdue_treatments(self) -> Result[list[Treatment]]:
        """Active treatments past their due date that are not finished."""
        treatments = await self._gateway.find_treatments(TreatmentFilter(overdue=True, active=True))
        logger.info("overdue_treatments_found", count=len(treatments))
        return Result.ok(treatments)

    @domain_operation
    async def update_treatment_status(
        self,
        treatment_id: str,
        new_status: TreatmentStatus | str,
        actor_id: str,
    ) -> Result[Treatment]:
        """Change a treatment's status and propagate the change to its risk.

        The treatment save and any resulting risk save happen in one gateway
        transaction.
        """
        status = coerce_enum(TreatmentStatus, new_status, "status")
        treatment = await self._load_treatment(treatment_id)
        now = self._clock.now()
        previous = treatment.status

        async with self._gateway.transaction():
            treatment.update_status(status, actor_id, now)
            await self._gateway.save_treatment(treatment)
            await self._propagate_to_risk(treatment, actor_id, now)

        logger.info(
            "treatment_status_updated",
            treatment_id=treatment.id,
            risk_id=treatment.risk_id,
            previous_status=previous.value,
            status=treatment.status.value,
        )
        return Result.ok(treatment)

    @domain_operation
    async def update_treatment_details(
        self,
        treatment_id: str,
        actor_id: str,
        *,
        description: str | _Unset = UNSET,
        due_date: datetime | None | _Unset = UNSET,
        assignee: str | None | _Unset = UNSET,
        cost: Decimal | int | float | None | _Unset = UNSET,
    ) -> Result[Treatment]:
        """Update descriptive treatment fields. Only passed arguments change.

        Passing ``None`` clears due date, assignee or cost.
        """

        def mutate(treatment: Treatment, now: datetime) -> None:
            if not isinstance(description, _Unset):
                treatment.update_description(description, actor_id, now)
            if not isinstance(due_date, _Unset):
                treatment.set_due_date(due_date, actor_id, now)
            if not isinstance(assignee, _Unset):
                treatment.assign_to(assignee, actor_id, now)
            if not isinstance(cost, _Unset):
                treatment.set_cost(cost, actor_id, now)

        treatment = await self._mutate_treatment(treatment_id, mutate)
        logger.info("treatment_details_updated", treatment_id=treatment.id)
        return Result.ok(treatment)

    @domain_operation
    async def link_treatment_control(
        self, treatment_id: str, control_id: str, actor_id: str
    ) -> Result[Treatment]:
        treatment = await self._mutate_treatment(
            treatment_id, lambda t, now: t.link_control(control_id, actor_id, now)
        )
        return Result.ok(treatment)

    @domain_operation
    async def unlink_treatment_control(
        self, treatment_id: str, control_id: str, actor_id: str
    ) -> Result[Treatment]:
        treatment = await self._mutate_treatment(
            treatment_id, lambda t, now: t.unlink_control(control_id, actor_id, now)
        )
        return Result.ok(treatment)

    @domain_operation
    async def deactivate_treatment(self, treatment_id: str, actor_id: str) -> Result[Treatment]:
        """Retire a treatment so it no longer counts toward its risk."""
        treatment = await self._mutate_treatment(
            treatment_id, lambda t, now: t.deactivate(actor_id, now)
        )
        logger.info("treatment_deactivated", treatment_id=treatment.id)
        return Result.ok(treatment)

    # =========================================================================
    # Reporting
    # =========================================================================

    @domain_operation
    async def get_risk_statistics(self) -> Result[RiskStatistics]:
        return Result.ok(await compute_risk_statistics(self._gateway))

    # =========================================================================
    # Propagation
    # =========================================================================

    async def _propagate_to_risk(self, treatment: Treatment, actor_id: str, now: datetime) -> None:
        """Apply the treatment's new status to its risk, if a rule fires."""
        risk = await self._gateway.find_risk_by_id(treatment.risk_id)
        if risk is None:
            logger.warning(
                "propagation_risk_missing",
                treatment_id=treatment.id,
                risk_id=treatment.risk_id,
            )
            return

        target = await self._propagated_status(treatment, risk)
        if target is None or target == risk.status:
            return

        if not risk.can_transition_to(target, enforce_table=self.enforce_transition_table):
            logger.warning(
                "propagation_skipped",
                risk_id=risk.id,
                treatment_id=treatment.id,
                current_status=risk.status.value,
                target_status=target.value,
            )
            return

        previous = risk.status
        risk.update_status(target, actor_id, now, enforce_table=self.enforce_transition_table)
        await self._gateway.save_risk(risk)
        logger.info(
            "risk_status_propagated",
            risk_id=risk.id,
            treatment_id=treatment.id,
            previous_status=previous.value,
            status=target.value,
        )

    async def _propagated_status(self, treatment: Treatment, risk: Risk) -> RiskStatus | None:
        """Risk status implied by the treatment's current status, if any."""
        completed = treatment.status in COMPLETED_TREATMENT_STATUSES

        match treatment.type:
            case TreatmentType.MITIGATE:
                if treatment.status != TreatmentStatus.VERIFIED:
                    return None
                active = await self._gateway.find_treatments_by_risk_id(
                    treatment.risk_id, active_only=True
                )
                all_done = all(
                    t.status in (TreatmentStatus.VERIFIED, TreatmentStatus.CANCELLED)
                    for t in active
                )
                # Fully mitigated risks stay MITIGATING until explicitly closed
                if all_done and risk.residual_risk_score is not None:
                    return RiskStatus.MITIGATING
                return None
            case TreatmentType.ACCEPT:
                return RiskStatus.ACCEPTED if completed else None
            case TreatmentType.TRANSFER:
                return RiskStatus.TRANSFERRED if completed else None
            case TreatmentType.AVOID:
                return RiskStatus.AVOIDED if completed else None
            case _:
                assert_never(treatment.type)

    # =========================================================================
    # Load / mutate / save helpers
    # =========================================================================

    async def _load_risk(self, risk_id: str) -> Risk:
        risk = await self._gateway.find_risk_by_id(risk_id)
        if risk is None:
            raise NotFoundError("Risk", risk_id)
        return risk

    async def _load_treatment(self, treatment_id: str) -> Treatment:
        treatment = await self._gateway.find_treatment_by_id(treatment_id)
        if treatment is None:
            raise NotFoundError("Treatment", treatment_id)
        return treatment

    async def _mutate_risk(self, risk_id: str, mutate: Callable[[Risk, datetime], Any]) -> Risk:
        risk = await self._load_risk(risk_id)
        mutate(risk, self._clock.now())
        await self._gateway.save_risk(risk)
        return risk

    async def _mutate_treatment(
        self, treatment_id: str, mutate: Callable[[Treatment, datetime], Any]
    ) -> Treatment:
        treatment = await self._load_treatment(treatment_id)
        mutate(treatment, self._clock.now())
        await self._gateway.save_treatment(treatment)
        return treatment


def _new_id() -> str:
    return str(uuid7())
