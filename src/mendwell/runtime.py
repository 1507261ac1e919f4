"""
Runtime — constructs and wires every mendwell component from one config.

The process entry point owns a single ``Runtime``; HTTP handlers reach the
components through it rather than through module-level globals.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mendwell.config import MendwellConfig
from mendwell.core.events import HealerEvent
from mendwell.diagnostics import DiagnosticsReporter
from mendwell.resilience.connection_healer import ConnectionHealer
from mendwell.resilience.health import HealthMonitor
from mendwell.resilience.metrics import MetricsCollector
from mendwell.resilience.orchestrator import SelfRepairOrchestrator

logger = logging.getLogger("mendwell.runtime")


class Runtime:
    """Owns the health monitor, metrics, connection healer, orchestrator and reporter."""

    def __init__(self, config: MendwellConfig, http_client: httpx.AsyncClient | None = None):
        self.config = config
        self.health_monitor = HealthMonitor()
        self.metrics = MetricsCollector(
            window=config.metrics_window,
            slow_request_ms=config.slow_request_ms,
            health_monitor=self.health_monitor,
        )
        self.connection_healer = ConnectionHealer(
            pulse_interval_seconds=config.pulse_interval_seconds,
            listener_limit=config.connection_listener_limit,
        )
        self.orchestrator: SelfRepairOrchestrator | None = None
        if config.self_repair_enabled:
            self.orchestrator = SelfRepairOrchestrator(
                health_monitor=self.health_monitor,
                http_client=http_client,
                base_url=config.loopback_url,
                dev_server_url=config.dev_server_url,
                dev_server_command=config.dev_server_command if not config.is_production else None,
                artifact_dir=config.artifact_dir,
                probe_timeout_seconds=config.probe_timeout_seconds,
                interval_seconds=config.repair_interval_seconds,
                healing_cycle_interval_seconds=config.healing_cycle_interval_seconds,
            )
        self.diagnostics = DiagnosticsReporter(self.orchestrator)

        self.connection_healer.events.on(HealerEvent.HEALING_PULSE, self._on_healing_pulse)

    def _on_healing_pulse(self, payload: dict[str, Any]) -> None:
        if payload["health"]["errorCount"] > self.config.emergency_error_threshold:
            logger.warning("High error count detected, performing emergency heal")
            self.connection_healer.emergency_heal()

    async def start(self) -> None:
        self.health_monitor.start_monitoring(self.config.health_interval_seconds)
        self.connection_healer.start()
        if self.orchestrator is not None:
            self.orchestrator.start()
        logger.info(f"Runtime started ({self.config.environment})")

    async def stop(self) -> None:
        self.health_monitor.stop_monitoring()
        self.connection_healer.stop()
        if self.orchestrator is not None:
            await self.orchestrator.shutdown()
        logger.info("Runtime stopped")
