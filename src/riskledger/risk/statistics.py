"""Risk register statistics computed from gateway counts."""

from typing import Any

from pydantic import BaseModel, Field

from riskledger.risk.gateway import RiskFilter, RiskGateway, TreatmentFilter
from riskledger.risk.types import (
    RiskCategory,
    RiskSeverity,
    RiskStatus,
    TreatmentStatus,
)


class TreatmentProgress(BaseModel):
    """Counts of active treatments by completion stage."""

    total: int = 0
    implemented: int = 0
    """IMPLEMENTED plus VERIFIED."""

    in_progress: int = 0
    planned: int = 0
    implementation_rate: float = Field(default=0.0, ge=0.0, le=100.0)


class RiskStatistics(BaseModel):
    """Dashboard summary of active risks and treatments."""

    total_risks: int = 0
    by_severity: dict[RiskSeverity, int] = Field(default_factory=dict)
    by_status: dict[RiskStatus, int] = Field(default_factory=dict)
    by_category: dict[RiskCategory, int] = Field(default_factory=dict)
    treatment_progress: TreatmentProgress = Field(default_factory=TreatmentProgress)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary with plain string keys."""
        return {
            "total_risks": self.total_risks,
            "by_severity": {k.value: v for k, v in self.by_severity.items()},
            "by_status": {k.value: v for k, v in self.by_status.items()},
            "by_category": {k.value: v for k, v in self.by_category.items()},
            "treatment_progress": self.treatment_progress.model_dump(),
        }


async def compute_risk_statistics(gateway: RiskGateway) -> RiskStatistics:
    """Count active risks and treatments through the gateway.

    Every severity, status and category appears in the result, with zero
    when no active risk matches.
    """
    total_risks = await gateway.count_risks(RiskFilter(active=True))

    by_severity = {
        severity: await gateway.count_risks(RiskFilter(severities=(severity,), active=True))
        for severity in RiskSeverity
    }
    by_status = {
        status: await gateway.count_risks(RiskFilter(statuses=(status,), active=True))
        for status in RiskStatus
    }
    by_category = {
        category: await gateway.count_risks(RiskFilter(categories=(category,), active=True))
        for category in RiskCategory
    }

    total_treatments = await gateway.count_treatments(TreatmentFilter(active=True))
    implemented = await gateway.count_treatments(
        TreatmentFilter(
            statuses=(TreatmentStatus.IMPLEMENTED, TreatmentStatus.VERIFIED),
            active=True,
        )
    )
    in_progress = await gateway.count_treatments(
        TreatmentFilter(statuses=(TreatmentStatus.IN_PROGRESS,), active=True)
    )
    planned = await gateway.count_treatments(
        TreatmentFilter(statuses=(TreatmentStatus.PLANNED,), active=True)
    )

    rate = (implemented / total_treatments * 100) if total_treatments > 0 else 0.0

    return RiskStatistics(
        total_risks=total_risks,
        by_severity=by_severity,
        by_status=by_status,
        by_category=by_category,
        treatment_progress=TreatmentProgress(
            total=total_treatments,
            implemented=implemented,
            in_progress=in_progress,
            planned=planned,
            implementation_rate=round(rate, 2),
        ),
    )
