"""Success/failure values returned by lifecycle operations."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from riskledger.core.exceptions import DomainError

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Outcome of a lifecycle operation.

    Exactly one of ``value`` (on success) or ``error`` (on failure) is
    meaningful. Successful operations without a payload carry ``None``.

    Example:
        result = await service.close_risk(risk_id, actor_id)
        if result.is_failure:
            return http_error(result.error)
        risk = result.value
    """

    value: T | None = None
    error: DomainError | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> "Result[T]":
        """Build a successful result."""
        return cls(value=value)

    @classmethod
    def fail(cls, error: DomainError) -> "Result[T]":
        """Build a failed result."""
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        """Return the value, raising the stored error on failure.

        Raises:
            DomainError: The failure this result carries
        """
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.is_success,
            "error_type": type(self.error).__name__ if self.error else None,
            "error_message": self.error.args[0] if self.error else None,
        }
