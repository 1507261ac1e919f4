"""Tests for the diagnostics reporter."""

from pathlib import Path
from unittest.mock import AsyncMock

from mendwell.core.types import BugReport, BugType, Severity, SystemHealth
from mendwell.diagnostics import DiagnosticsReporter, generate_recommendations
from mendwell.resilience.orchestrator import SelfRepairOrchestrator


def _bugs(n: int) -> list[BugReport]:
    return [
        BugReport(id=f"b{i}", type=BugType.API, severity=Severity.LOW, description="d", solution="s")
        for i in range(n)
    ]


class TestRecommendations:
    def test_healthy_system_has_none(self):
        assert generate_recommendations(SystemHealth(vite=100, react=100), []) == []

    def test_dev_server_failure_is_critical(self):
        recs = generate_recommendations(SystemHealth(vite=0, react=100), [])
        assert [r["priority"] for r in recs] == ["critical"]

    def test_client_below_eighty_is_high(self):
        recs = generate_recommendations(SystemHealth(vite=100, react=79), [])
        assert [r["priority"] for r in recs] == ["high"]

    def test_many_bugs_is_medium(self):
        assert generate_recommendations(SystemHealth(vite=100, react=100), _bugs(3)) == []
        recs = generate_recommendations(SystemHealth(vite=100, react=100), _bugs(4))
        assert [r["priority"] for r in recs] == ["medium"]


class TestDiagnosticsReporter:
    def test_defaults_without_orchestrator(self):
        report = DiagnosticsReporter().build_diagnostics()

        assert report["systemHealth"]["overall"] == 85
        assert report["bugReport"] == []
        assert report["recommendations"][0]["priority"] == "critical"
        assert report["viteStatus"]["status"] == "critical"
        assert report["ultimateSolution"]["approach"] == "Hybrid Architecture"

    def test_reads_orchestrator_state(self, tmp_path):
        orch = SelfRepairOrchestrator(artifact_dir=tmp_path)
        orch.system_health = SystemHealth(overall=90, vite=100, react=100)
        orch.catalog_bug(_bugs(1)[0])

        report = DiagnosticsReporter(orch).build_diagnostics()

        assert report["systemHealth"]["overall"] == 90
        assert [b["id"] for b in report["bugReport"]] == ["b0"]
        assert report["recommendations"] == []

    def test_dev_server_solution_writes_artifact(self, tmp_path):
        reporter = DiagnosticsReporter()
        reporter.attach(SelfRepairOrchestrator(artifact_dir=tmp_path))

        solution = reporter.trigger_dev_server_solution()

        assert solution["status"] == "Ready for deployment"
        assert Path(solution["artifact"]).exists()

    def test_dev_server_solution_without_orchestrator(self):
        solution = DiagnosticsReporter().trigger_dev_server_solution()
        assert "artifact" not in solution

    async def test_emergency_repair_delegates(self, tmp_path):
        orch = SelfRepairOrchestrator(artifact_dir=tmp_path)
        orch.perform_emergency_repair = AsyncMock()

        assert await DiagnosticsReporter(orch).trigger_emergency_repair() is True
        orch.perform_emergency_repair.assert_awaited_once()

    async def test_emergency_repair_without_orchestrator(self):
        assert await DiagnosticsReporter().trigger_emergency_repair() is False
