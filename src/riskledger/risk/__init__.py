"""Risk lifecycle: scoring, review cadence, risk and treatment aggregates.

Usage:
    from riskledger.risk import InMemoryRiskGateway, RiskLifecycleService

    service = RiskLifecycleService(InMemoryRiskGateway())
    result = await service.create_risk(...)
"""

from riskledger.risk.gateway import Pagination, RiskFilter, RiskGateway, TreatmentFilter
from riskledger.risk.memory import InMemoryRiskGateway
from riskledger.risk.review import ReviewCadence, add_months
from riskledger.risk.risk import Risk, RiskSnapshot
from riskledger.risk.scoring import RiskScore, calculate, severity_for_score
from riskledger.risk.service import (
    UNSET,
    CreateRiskOptions,
    CreateTreatmentOptions,
    RiskLifecycleService,
)
from riskledger.risk.statistics import RiskStatistics, TreatmentProgress, compute_risk_statistics
from riskledger.risk.transitions import allowed_transitions, can_transition
from riskledger.risk.treatment import Treatment, TreatmentSnapshot
from riskledger.risk.types import (
    RiskCategory,
    RiskImpact,
    RiskLikelihood,
    RiskSeverity,
    RiskStatus,
    TreatmentStatus,
    TreatmentType,
)
from riskledger.risk.values import RiskName, RiskOwner

__all__ = [
    # Enums
    "RiskCategory",
    "RiskStatus",
    "RiskSeverity",
    "RiskImpact",
    "RiskLikelihood",
    "TreatmentType",
    "TreatmentStatus",
    # Scoring and review
    "RiskScore",
    "calculate",
    "severity_for_score",
    "ReviewCadence",
    "add_months",
    # Aggregates
    "RiskName",
    "RiskOwner",
    "Risk",
    "RiskSnapshot",
    "Treatment",
    "TreatmentSnapshot",
    "allowed_transitions",
    "can_transition",
    # Persistence
    "RiskGateway",
    "RiskFilter",
    "TreatmentFilter",
    "Pagination",
    "InMemoryRiskGateway",
    # Service
    "RiskLifecycleService",
    "CreateRiskOptions",
    "CreateTreatmentOptions",
    "UNSET",
    "RiskStatistics",
    "TreatmentProgress",
    "compute_risk_statistics",
]
