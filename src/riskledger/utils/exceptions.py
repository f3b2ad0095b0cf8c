"""Custom exceptions for riskledger."""


class RiskLedgerError(Exception):
    """Base exception for all riskledger errors."""

    pass


class ConfigurationError(RiskLedgerError):
    """Error in configuration or settings."""

    pass
