"""Tests for component wiring in the runtime."""

from mendwell.config import MendwellConfig
from mendwell.core.events import HealerEvent
from mendwell.runtime import Runtime


class TestWiring:
    def test_metrics_feed_health_monitor(self, mendwell_config):
        runtime = Runtime(mendwell_config)
        runtime.metrics.record_request(10.0, 500)
        assert runtime.health_monitor.metrics.request_count == 1
        assert runtime.health_monitor.metrics.error_count == 1

    def test_self_repair_disabled(self, tmp_path):
        runtime = Runtime(MendwellConfig(self_repair_enabled=False, artifact_dir=tmp_path))
        assert runtime.orchestrator is None
        assert runtime.diagnostics.orchestrator is None

    def test_dev_server_command_ignored_in_production(self, tmp_path):
        config = MendwellConfig(environment="production", dev_server_command="npx vite", artifact_dir=tmp_path)
        assert Runtime(config).orchestrator.dev_server_command is None


class TestEmergencyThreshold:
    def test_pulse_over_threshold_triggers_emergency_heal(self, mendwell_config):
        runtime = Runtime(mendwell_config)
        heals = []
        runtime.connection_healer.events.on(HealerEvent.EMERGENCY_HEAL, heals.append)
        for _ in range(11):
            runtime.connection_healer.record_error()

        runtime.connection_healer.pulse()

        assert len(heals) == 1
        assert runtime.connection_healer.get_health().error_count == 0

    def test_pulse_at_threshold_does_not(self, mendwell_config):
        runtime = Runtime(mendwell_config)
        for _ in range(10):
            runtime.connection_healer.record_error()

        runtime.connection_healer.pulse()

        assert runtime.connection_healer.get_health().error_count == 10


class TestLifecycle:
    async def test_start_stop(self, mendwell_config):
        runtime = Runtime(mendwell_config)
        await runtime.start()
        assert runtime.health_monitor.is_monitoring
        assert runtime.connection_healer.is_running
        assert runtime.orchestrator.is_running

        await runtime.stop()
        assert not runtime.health_monitor.is_monitoring
        assert not runtime.connection_healer.is_running
        assert not runtime.orchestrator.is_running
