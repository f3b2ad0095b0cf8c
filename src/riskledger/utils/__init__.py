"""Utility modules for riskledger."""

from riskledger.utils.exceptions import (
    ConfigurationError,
    RiskLedgerError,
)

__all__ = [
    "RiskLedgerError",
    "ConfigurationError",
]
