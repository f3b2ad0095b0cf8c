"""Unit tests for risk register statistics."""

import pytest

from riskledger.risk.statistics import RiskStatistics, compute_risk_statistics
from riskledger.risk.types import (
    RiskCategory,
    RiskImpact,
    RiskLikelihood,
    RiskSeverity,
    RiskStatus,
    TreatmentStatus,
)


class TestRiskStatistics:
    """Tests for compute_risk_statistics() and get_risk_statistics()."""

    @pytest.mark.asyncio
    async def test_empty_register(self, memory_gateway) -> None:
        """Test every bucket is present and zero for an empty register."""
        stats = await compute_risk_statistics(memory_gateway)

        assert stats.total_risks == 0
        assert set(stats.by_severity) == set(RiskSeverity)
        assert set(stats.by_status) == set(RiskStatus)
        assert set(stats.by_category) == set(RiskCategory)
        assert all(count == 0 for count in stats.by_status.values())
        assert stats.treatment_progress.total == 0
        assert stats.treatment_progress.implementation_rate == 0.0

    @pytest.mark.asyncio
    async def test_counts(self, service, create_risk, create_treatment) -> None:
        """Test counts cover active risks and treatments only."""
        critical = await create_risk(
            category=RiskCategory.SECURITY,
            impact=RiskImpact.SEVERE,
            likelihood=RiskLikelihood.ALMOST_CERTAIN,
        )
        await create_risk(category=RiskCategory.LEGAL)
        retired = await create_risk(category=RiskCategory.LEGAL)
        (await service.deactivate_risk(retired.id, "user-1")).unwrap()

        done = await create_treatment(critical.id)
        working = await create_treatment(critical.id, name="Second")
        await create_treatment(critical.id, name="Third")
        await service.update_treatment_status(done.id, TreatmentStatus.VERIFIED, "user-1")
        await service.update_treatment_status(working.id, TreatmentStatus.IN_PROGRESS, "user-1")

        stats = (await service.get_risk_statistics()).unwrap()

        assert stats.total_risks == 2
        assert stats.by_severity[RiskSeverity.CRITICAL] == 1
        assert stats.by_severity[RiskSeverity.MEDIUM] == 1
        assert stats.by_category[RiskCategory.LEGAL] == 1
        assert stats.by_status[RiskStatus.MITIGATING] == 1
        assert stats.by_status[RiskStatus.IDENTIFIED] == 1

        progress = stats.treatment_progress
        assert progress.total == 3
        assert progress.implemented == 1
        assert progress.in_progress == 1
        assert progress.planned == 1
        assert progress.implementation_rate == 33.33

    def test_to_dict_uses_plain_keys(self) -> None:
        """Test enum keys are rendered as their values."""
        stats = RiskStatistics(total_risks=1, by_severity={RiskSeverity.HIGH: 1})

        data = stats.to_dict()

        assert data["by_severity"] == {"high": 1}
        assert data["treatment_progress"]["total"] == 0
