"""Risk score calculation and severity banding.

Scores are the product of two five-level ratings, so they always fall in
1-25. Every inherent and residual score in the system is produced here so
that two risks rated the same way always get the same score and severity.

Bands (inclusive lower bounds):

    score >= 20  CRITICAL
    score >= 15  HIGH
    score >= 8   MEDIUM
    score >= 3   LOW
    otherwise    NEGLIGIBLE
"""

from typing import Self, assert_never

from pydantic import BaseModel, ConfigDict, Field, model_validator

from riskledger.core.exceptions import ValidationError
from riskledger.risk.types import RiskImpact, RiskLikelihood, RiskSeverity

MIN_SCORE = 1
MAX_SCORE = 25

# Lower bound of each band, most severe first
SEVERITY_THRESHOLDS: tuple[tuple[int, RiskSeverity], ...] = (
    (20, RiskSeverity.CRITICAL),
    (15, RiskSeverity.HIGH),
    (8, RiskSeverity.MEDIUM),
    (3, RiskSeverity.LOW),
)

# Higher rank = more severe
SEVERITY_RANK: dict[RiskSeverity, int] = {
    RiskSeverity.NEGLIGIBLE: 0,
    RiskSeverity.LOW: 1,
    RiskSeverity.MEDIUM: 2,
    RiskSeverity.HIGH: 3,
    RiskSeverity.CRITICAL: 4,
}


def impact_value(impact: RiskImpact) -> int:
    """Map an impact rating to 1-5 (most severe = 5)."""
    match impact:
        case RiskImpact.SEVERE:
            return 5
        case RiskImpact.MAJOR:
            return 4
        case RiskImpact.MODERATE:
            return 3
        case RiskImpact.MINOR:
            return 2
        case RiskImpact.INSIGNIFICANT:
            return 1
        case _:
            assert_never(impact)


def likelihood_value(likelihood: RiskLikelihood) -> int:
    """Map a likelihood rating to 1-5 (most likely = 5)."""
    match likelihood:
        case RiskLikelihood.ALMOST_CERTAIN:
            return 5
        case RiskLikelihood.LIKELY:
            return 4
        case RiskLikelihood.POSSIBLE:
            return 3
        case RiskLikelihood.UNLIKELY:
            return 2
        case RiskLikelihood.RARE:
            return 1
        case _:
            assert_never(likelihood)


def severity_for_score(score: int) -> RiskSeverity:
    """Return the severity band for a score."""
    for lower_bound, severity in SEVERITY_THRESHOLDS:
        if score >= lower_bound:
            return severity
    return RiskSeverity.NEGLIGIBLE


class RiskScore(BaseModel):
    """Immutable numeric risk score with its severity band.

    Build instances with ``calculate`` or ``RiskScore.from_value``; direct
    construction is validated so the severity always matches the value.
    """

    model_config = ConfigDict(frozen=True)

    value: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    severity: RiskSeverity

    @model_validator(mode="after")
    def validate_severity_band(self) -> Self:
        """Reject a severity that does not match the value's band."""
        expected = severity_for_score(self.value)
        if self.severity != expected:
            raise ValueError(
                f"severity {self.severity.value} does not match score {self.value} "
                f"(expected {expected.value})"
            )
        return self

    @classmethod
    def from_value(cls, score: int) -> "RiskScore":
        """Create a score from a pre-computed value.

        Raises:
            ValidationError: If the value is not an integer in [1, 25]
        """
        if isinstance(score, bool) or not isinstance(score, int):
            raise ValidationError("score", "Risk score must be an integer")
        if score < MIN_SCORE or score > MAX_SCORE:
            raise ValidationError(
                "score", f"Risk score must be between {MIN_SCORE} and {MAX_SCORE}"
            )
        return cls(value=score, severity=severity_for_score(score))

    def is_more_severe_than(self, other: "RiskScore") -> bool:
        """Compare severity bands."""
        return SEVERITY_RANK[self.severity] > SEVERITY_RANK[other.severity]


def calculate(impact: RiskImpact, likelihood: RiskLikelihood) -> RiskScore:
    """Calculate a risk score from impact and likelihood ratings.

    Args:
        impact: Impact rating
        likelihood: Likelihood rating

    Returns:
        RiskScore with value impact x likelihood and its severity band
    """
    return RiskScore.from_value(impact_value(impact) * likelihood_value(likelihood))
