"""Allowed risk status transitions.

    IDENTIFIED -> ASSESSED -> MITIGATING -> {ACCEPTED, TRANSFERRED, AVOIDED} -> CLOSED

Responses (MITIGATING, ACCEPTED, TRANSFERRED, AVOIDED) may replace one
another and may fall back to ASSESSED when a response is abandoned.
IDENTIFIED can never jump straight to CLOSED, and a CLOSED risk can only be
reopened to ASSESSED. Staying in the same status is always allowed.

Closing additionally requires a residual assessment; that check lives on
the aggregate because it depends on more than the status.
"""

from typing import assert_never

from riskledger.risk.types import RiskStatus

_RESPONSES: frozenset[RiskStatus] = frozenset(
    {
        RiskStatus.MITIGATING,
        RiskStatus.ACCEPTED,
        RiskStatus.TRANSFERRED,
        RiskStatus.AVOIDED,
    }
)


def allowed_transitions(status: RiskStatus) -> frozenset[RiskStatus]:
    """Return the statuses reachable from ``status`` in one step."""
    match status:
        case RiskStatus.IDENTIFIED:
            return frozenset({RiskStatus.ASSESSED}) | _RESPONSES
        case RiskStatus.ASSESSED:
            return _RESPONSES | {RiskStatus.CLOSED}
        case (
            RiskStatus.MITIGATING
            | RiskStatus.ACCEPTED
            | RiskStatus.TRANSFERRED
            | RiskStatus.AVOIDED
        ):
            return (_RESPONSES - {status}) | {RiskStatus.ASSESSED, RiskStatus.CLOSED}
        case RiskStatus.CLOSED:
            return frozenset({RiskStatus.ASSESSED})
        case _:
            assert_never(status)


def can_transition(current: RiskStatus, target: RiskStatus) -> bool:
    """Check whether a risk may move from ``current`` to ``target``."""
    return current == target or target in allowed_transitions(current)
