"""Database models for riskledger."""

from .base import Base, UTCDateTime
from .risk import (
    RiskAssetLink,
    RiskControlLink,
    RiskModel,
    RiskTag,
    TreatmentControlLink,
    TreatmentModel,
)

__all__ = [
    "Base",
    "UTCDateTime",
    "RiskModel",
    "RiskControlLink",
    "RiskAssetLink",
    "RiskTag",
    "TreatmentModel",
    "TreatmentControlLink",
]
