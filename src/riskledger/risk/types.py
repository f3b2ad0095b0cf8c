"""Enumerations shared by the risk and treatment aggregates."""

from enum import Enum


class RiskCategory(str, Enum):
    """Business area a risk belongs to."""

    STRATEGIC = "strategic"
    OPERATIONAL = "operational"
    FINANCIAL = "financial"
    COMPLIANCE = "compliance"
    REPUTATIONAL = "reputational"
    TECHNOLOGICAL = "technological"
    LEGAL = "legal"
    SECURITY = "security"
    PRIVACY = "privacy"
    THIRD_PARTY = "third_party"
    OTHER = "other"


class RiskStatus(str, Enum):
    """Lifecycle status of a risk."""

    IDENTIFIED = "identified"
    ASSESSED = "assessed"
    MITIGATING = "mitigating"
    ACCEPTED = "accepted"
    TRANSFERRED = "transferred"
    AVOIDED = "avoided"
    CLOSED = "closed"


class RiskSeverity(str, Enum):
    """Severity band derived from a numeric risk score."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NEGLIGIBLE = "negligible"


class RiskLikelihood(str, Enum):
    """How likely a risk is to occur."""

    ALMOST_CERTAIN = "almost_certain"
    LIKELY = "likely"
    POSSIBLE = "possible"
    UNLIKELY = "unlikely"
    RARE = "rare"


class RiskImpact(str, Enum):
    """How bad the outcome is if a risk materializes."""

    SEVERE = "severe"
    MAJOR = "major"
    MODERATE = "moderate"
    MINOR = "minor"
    INSIGNIFICANT = "insignificant"


class TreatmentType(str, Enum):
    """Way an organization responds to a risk."""

    MITIGATE = "mitigate"
    ACCEPT = "accept"
    TRANSFER = "transfer"
    AVOID = "avoid"


class TreatmentStatus(str, Enum):
    """Lifecycle status of a treatment."""

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    IMPLEMENTED = "implemented"
    VERIFIED = "verified"
    INEFFECTIVE = "ineffective"
    CANCELLED = "cancelled"


# Treatment statuses that count as work finished
COMPLETED_TREATMENT_STATUSES: frozenset[TreatmentStatus] = frozenset(
    {TreatmentStatus.IMPLEMENTED, TreatmentStatus.VERIFIED}
)

# Treatment statuses that can no longer become overdue
CLOSED_TREATMENT_STATUSES: frozenset[TreatmentStatus] = frozenset(
    {TreatmentStatus.IMPLEMENTED, TreatmentStatus.VERIFIED, TreatmentStatus.CANCELLED}
)
