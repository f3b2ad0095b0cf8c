"""Unit tests for the Treatment aggregate."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from riskledger.core.exceptions import IllegalTransitionError, ValidationError
from riskledger.risk.treatment import Treatment, progress_for_status
from riskledger.risk.types import TreatmentStatus, TreatmentType

NOW = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)
LATER = NOW + timedelta(days=1)


def make_treatment(**overrides) -> Treatment:
    """Helper to create a Treatment for testing."""
    fields = {
        "treatment_id": "treatment-1",
        "risk_id": "risk-1",
        "name": "Install flood barriers",
        "description": "Deploy removable barriers around the ground floor",
        "type": TreatmentType.MITIGATE,
        "created_by": "user-1",
        "created_at": NOW,
    }
    fields.update(overrides)
    return Treatment.create(**fields)


class TestTreatmentCreate:
    """Tests for Treatment.create()."""

    def test_defaults(self) -> None:
        """Test a new treatment starts PLANNED with no completion date."""
        treatment = make_treatment()

        assert treatment.status == TreatmentStatus.PLANNED
        assert treatment.completed_date is None
        assert treatment.is_active is True
        assert treatment.version == 0
        assert treatment.get_progress_percentage() == 10

    def test_created_completed(self) -> None:
        """Test a treatment created VERIFIED is completed at creation time."""
        treatment = make_treatment(status=TreatmentStatus.VERIFIED)
        assert treatment.completed_date == NOW

    def test_name_required(self) -> None:
        """Test a blank name is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            make_treatment(name="  ")
        assert exc_info.value.field == "name"

    def test_name_too_long(self) -> None:
        """Test names over 200 characters are rejected."""
        with pytest.raises(ValidationError):
            make_treatment(name="n" * 201)

    def test_description_too_long(self) -> None:
        """Test descriptions over 1000 characters are rejected."""
        with pytest.raises(ValidationError):
            make_treatment(description="d" * 1001)

    def test_invalid_type(self) -> None:
        """Test an unknown treatment type is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            make_treatment(type="ignore")
        assert exc_info.value.field == "type"

    def test_risk_id_required(self) -> None:
        """Test the owning risk is required."""
        with pytest.raises(ValidationError):
            make_treatment(risk_id="")

    def test_cost_normalized_to_decimal(self) -> None:
        """Test numeric costs become Decimals."""
        assert make_treatment(cost=1500).cost == Decimal("1500")
        assert make_treatment(cost=Decimal("99.95")).cost == Decimal("99.95")

    @pytest.mark.parametrize("cost", [-1, Decimal("-0.01"), float("nan"), True])
    def test_invalid_cost(self, cost) -> None:
        """Test negative, non-finite and boolean costs are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            make_treatment(cost=cost)
        assert exc_info.value.field == "cost"

    @pytest.mark.parametrize("cost", [Decimal("1234.5678"), Decimal("0.001"), 10**16])
    def test_cost_must_fit_storage_precision(self, cost) -> None:
        """Test costs beyond two decimal places or sixteen integer digits are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            make_treatment(cost=cost)
        assert exc_info.value.field == "cost"

    def test_cost_trailing_zeros_accepted(self) -> None:
        """Test extra zero decimals collapse to cents."""
        assert make_treatment(cost=Decimal("10.500")).cost == Decimal("10.50")
        assert make_treatment(cost=Decimal("9999999999999999.99")).cost is not None

    def test_naive_due_date_rejected(self) -> None:
        """Test due dates without a timezone are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            make_treatment(due_date=datetime(2024, 3, 1))
        assert exc_info.value.field == "due_date"

    def test_long_control_id_rejected(self) -> None:
        """Test control IDs longer than 255 characters are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            make_treatment(related_control_ids=["c" * 256])
        assert exc_info.value.field == "related_control_ids"


class TestTreatmentStatus:
    """Tests for status changes and completion tracking."""

    def test_implemented_sets_completed_date(self) -> None:
        """Test the first completion stamps completed_date."""
        treatment = make_treatment()
        treatment.update_status(TreatmentStatus.IMPLEMENTED, "user-2", LATER)

        assert treatment.status == TreatmentStatus.IMPLEMENTED
        assert treatment.completed_date == LATER
        assert treatment.updated_by == "user-2"

    def test_verified_keeps_first_completion(self) -> None:
        """Test verifying later does not move completed_date."""
        treatment = make_treatment()
        treatment.update_status(TreatmentStatus.IMPLEMENTED, "user-2", LATER)
        treatment.update_status(TreatmentStatus.VERIFIED, "user-3", LATER + timedelta(days=5))

        assert treatment.completed_date == LATER

    def test_reopening_clears_completed_date(self) -> None:
        """Test moving back to IN_PROGRESS clears completion."""
        treatment = make_treatment(status=TreatmentStatus.IMPLEMENTED)
        treatment.update_status(TreatmentStatus.IN_PROGRESS, "user-2", LATER)
        assert treatment.completed_date is None

    def test_ineffective_keeps_completed_date(self) -> None:
        """Test INEFFECTIVE leaves an existing completion date alone."""
        treatment = make_treatment(status=TreatmentStatus.IMPLEMENTED)
        treatment.update_status(TreatmentStatus.INEFFECTIVE, "user-2", LATER)
        assert treatment.completed_date == NOW

    def test_invalid_status(self) -> None:
        """Test an unknown status is rejected without changes."""
        treatment = make_treatment()
        with pytest.raises(ValidationError):
            treatment.update_status("done", "user-2", LATER)
        assert treatment.status == TreatmentStatus.PLANNED
        assert treatment.updated_at is None

    @pytest.mark.parametrize(
        "status,progress",
        [
            (TreatmentStatus.PLANNED, 10),
            (TreatmentStatus.IN_PROGRESS, 50),
            (TreatmentStatus.IMPLEMENTED, 90),
            (TreatmentStatus.VERIFIED, 100),
            (TreatmentStatus.INEFFECTIVE, 0),
            (TreatmentStatus.CANCELLED, 0),
        ],
    )
    def test_progress(self, status: TreatmentStatus, progress: int) -> None:
        """Test each status has a fixed progress percentage."""
        assert progress_for_status(status) == progress


class TestTreatmentOverdue:
    """Tests for is_overdue()."""

    def test_no_due_date(self) -> None:
        """Test a treatment without a due date is never overdue."""
        assert make_treatment().is_overdue(LATER) is False

    def test_past_due(self) -> None:
        """Test an open treatment past its due date is overdue."""
        treatment = make_treatment(due_date=NOW)
        assert treatment.is_overdue(NOW) is False
        assert treatment.is_overdue(NOW + timedelta(seconds=1)) is True

    @pytest.mark.parametrize(
        "status",
        [TreatmentStatus.IMPLEMENTED, TreatmentStatus.VERIFIED, TreatmentStatus.CANCELLED],
    )
    def test_finished_never_overdue(self, status: TreatmentStatus) -> None:
        """Test finished or cancelled treatments are not overdue."""
        treatment = make_treatment(due_date=NOW, status=status)
        assert treatment.is_overdue(LATER) is False

    def test_ineffective_can_be_overdue(self) -> None:
        """Test INEFFECTIVE still counts as open."""
        treatment = make_treatment(due_date=NOW, status=TreatmentStatus.INEFFECTIVE)
        assert treatment.is_overdue(LATER) is True


class TestTreatmentDetails:
    """Tests for descriptive updates and control links."""

    def test_details(self) -> None:
        """Test due date, assignee and cost updates."""
        treatment = make_treatment()
        treatment.set_due_date(LATER, "user-2", LATER)
        treatment.assign_to("user-7", "user-2", LATER)
        treatment.set_cost(Decimal("250.50"), "user-2", LATER)

        assert treatment.due_date == LATER
        assert treatment.assignee == "user-7"
        assert treatment.cost == Decimal("250.50")

        treatment.assign_to(None, "user-2", LATER)
        treatment.set_cost(None, "user-2", LATER)
        assert treatment.assignee is None
        assert treatment.cost is None

    def test_set_naive_due_date_rejected(self) -> None:
        """Test set_due_date keeps the previous value when given a naive datetime."""
        treatment = make_treatment(due_date=NOW)
        with pytest.raises(ValidationError) as exc_info:
            treatment.set_due_date(datetime(2024, 3, 1), "user-2", LATER)

        assert exc_info.value.field == "due_date"
        assert treatment.due_date == NOW

    def test_link_long_control_id_rejected(self) -> None:
        """Test linking a control ID longer than 255 characters is rejected."""
        treatment = make_treatment()
        with pytest.raises(ValidationError) as exc_info:
            treatment.link_control("c" * 256, "user-2", LATER)

        assert exc_info.value.field == "control_id"
        assert treatment.related_control_ids == ()

    def test_control_links(self) -> None:
        """Test linking and unlinking controls."""
        treatment = make_treatment(related_control_ids=["c1"])
        treatment.link_control("c2", "user-2", LATER)
        assert treatment.related_control_ids == ("c1", "c2")

        with pytest.raises(IllegalTransitionError):
            treatment.link_control("c2", "user-2", LATER)

        treatment.unlink_control("c1", "user-2", LATER)
        assert treatment.related_control_ids == ("c2",)

    def test_snapshot_round_trip(self) -> None:
        """Test snapshot rehydration preserves state."""
        treatment = make_treatment(cost=Decimal("10.00"), due_date=LATER, assignee="user-7")
        restored = Treatment.from_snapshot(treatment.to_snapshot())
        assert restored.to_snapshot() == treatment.to_snapshot()
