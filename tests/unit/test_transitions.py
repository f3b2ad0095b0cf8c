"""Unit tests for the risk status transition table."""

import pytest

from riskledger.risk.transitions import allowed_transitions, can_transition
from riskledger.risk.types import RiskStatus

RESPONSES = [
    RiskStatus.MITIGATING,
    RiskStatus.ACCEPTED,
    RiskStatus.TRANSFERRED,
    RiskStatus.AVOIDED,
]


class TestTransitionTable:
    """Tests for allowed_transitions() and can_transition()."""

    def test_every_status_has_an_entry(self) -> None:
        """Test the table covers every status."""
        for status in RiskStatus:
            assert isinstance(allowed_transitions(status), frozenset)

    @pytest.mark.parametrize("status", list(RiskStatus))
    def test_self_transition_allowed(self, status: RiskStatus) -> None:
        """Test staying in the same status is always allowed."""
        assert can_transition(status, status)

    def test_identified(self) -> None:
        """Test IDENTIFIED can be assessed or responded to, not closed."""
        assert can_transition(RiskStatus.IDENTIFIED, RiskStatus.ASSESSED)
        for response in RESPONSES:
            assert can_transition(RiskStatus.IDENTIFIED, response)
        assert not can_transition(RiskStatus.IDENTIFIED, RiskStatus.CLOSED)

    def test_assessed(self) -> None:
        """Test ASSESSED can respond or close, not go back to IDENTIFIED."""
        for response in RESPONSES:
            assert can_transition(RiskStatus.ASSESSED, response)
        assert can_transition(RiskStatus.ASSESSED, RiskStatus.CLOSED)
        assert not can_transition(RiskStatus.ASSESSED, RiskStatus.IDENTIFIED)

    @pytest.mark.parametrize("source", RESPONSES)
    def test_responses(self, source: RiskStatus) -> None:
        """Test responses can switch, fall back to ASSESSED or close."""
        for target in RESPONSES:
            assert can_transition(source, target)
        assert can_transition(source, RiskStatus.ASSESSED)
        assert can_transition(source, RiskStatus.CLOSED)
        assert not can_transition(source, RiskStatus.IDENTIFIED)

    def test_closed_only_reopens(self) -> None:
        """Test CLOSED can only go back to ASSESSED."""
        assert allowed_transitions(RiskStatus.CLOSED) == frozenset({RiskStatus.ASSESSED})
        for target in RESPONSES:
            assert not can_transition(RiskStatus.CLOSED, target)

    def test_nothing_returns_to_identified(self) -> None:
        """Test no status leads back to IDENTIFIED."""
        for status in RiskStatus:
            assert RiskStatus.IDENTIFIED not in allowed_transitions(status)
