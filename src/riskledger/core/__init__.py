"""Core building blocks shared across riskledger."""

from riskledger.core.clock import Clock, FixedClock, SystemClock
from riskledger.core.exceptions import (
    ConcurrencyConflictError,
    DomainError,
    IllegalTransitionError,
    NotFoundError,
    ValidationError,
)
from riskledger.core.result import Result

__all__ = [
    # Clock
    "Clock",
    "FixedClock",
    "SystemClock",
    # Errors
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "IllegalTransitionError",
    "ConcurrencyConflictError",
    # Results
    "Result",
]
