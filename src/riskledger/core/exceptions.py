"""Domain exceptions for the risk lifecycle engine.

Every expected rule violation is a ``DomainError``. Aggregates raise them;
the lifecycle service turns them into failed ``Result`` values so callers
never have to catch them. Anything that is not a ``DomainError`` (database
outages, programming errors) propagates unchanged.
"""

from enum import Enum

from riskledger.utils.exceptions import RiskLedgerError


class DomainError(RiskLedgerError):
    """Base class for expected domain rule violations."""

    pass


class ValidationError(DomainError):
    """Raised when a field value is malformed or out of range.

    Attributes:
        field: Name of the offending field (e.g., "name", "cost")
    """

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def __str__(self) -> str:
        return f"ValidationError({self.field}): {self.args[0]}"


class NotFoundError(DomainError):
    """Raised when a referenced record does not exist.

    Attributes:
        entity: Kind of record that was looked up (e.g., "Risk")
        entity_id: Identifier that was not found
    """

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} with ID {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id

    def __str__(self) -> str:
        return f"NotFoundError: {self.args[0]}"


class IllegalTransitionError(DomainError):
    """Raised when a state change is not allowed from the current state.

    Covers status transitions as well as link/unlink operations whose
    precondition does not hold.

    Attributes:
        entity: Kind of record being changed
        current: Current state (status value or link target)
        requested: Requested state or operation
    """

    def __init__(
        self,
        message: str,
        entity: str,
        current: str | Enum | None = None,
        requested: str | Enum | None = None,
    ):
        super().__init__(message)
        self.entity = entity
        self.current = current.value if isinstance(current, Enum) else current
        self.requested = requested.value if isinstance(requested, Enum) else requested

    def __str__(self) -> str:
        return f"IllegalTransitionError({self.entity}): {self.args[0]}"


class ConcurrencyConflictError(DomainError):
    """Raised when a save is based on a stale version of a record.

    Attributes:
        entity: Kind of record being saved
        entity_id: Identifier of the record
        expected_version: Version the caller loaded
        actual_version: Version currently stored
    """

    def __init__(
        self,
        entity: str,
        entity_id: str,
        expected_version: int,
        actual_version: int | None,
    ):
        super().__init__(f"{entity} {entity_id} was modified concurrently")
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version

    def __str__(self) -> str:
        return (
            f"ConcurrencyConflictError: {self.args[0]} "
            f"(expected={self.expected_version}, actual={self.actual_version})"
        )
