"""
Health monitor — named health checks run on an interval, folded into a score.

Checks are registered with ``add_health_check`` and dispatched from the
same registry by ``run_health_checks``. Every cycle replaces the whole
result map; no result is smoothed across cycles. Score thresholds are
announced through ``events`` (``HealthEvent``) on every cycle the
condition holds.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

import psutil

from mendwell.core.events import EventEmitter, HealthEvent
from mendwell.core.types import (
    CheckOutcome,
    CheckStatus,
    HealthCheckResult,
    HealthMetrics,
    HealthStatus,
)

logger = logging.getLogger("mendwell.health")

CheckFn = Callable[[], "Awaitable[CheckOutcome | CheckStatus] | CheckOutcome | CheckStatus"]


class HealthCheckError(Exception):
    """Raised by a check to report itself unhealthy."""


def system_memory_percent() -> float:
    return psutil.virtual_memory().percent


class HealthMonitor:
    """Runs registered checks and keeps a 0-100 health score."""

    UNHEALTHY_PENALTY = 20
    DEGRADED_PENALTY = 10
    MAX_ERROR_PENALTY = 30
    CRITICAL_SCORE = 50
    DEGRADED_SCORE = 75
    MEMORY_DEGRADED_PCT = 75.0
    MEMORY_CRITICAL_PCT = 90.0

    def __init__(
        self,
        memory_percent_fn: Callable[[], float] = system_memory_percent,
        register_defaults: bool = True,
    ):
        self.events: EventEmitter[HealthEvent] = EventEmitter(HealthEvent)
        self.checks: dict[str, HealthCheckResult] = {}
        self.metrics = HealthMetrics()
        self._check_fns: dict[str, CheckFn] = {}
        self._memory_percent = memory_percent_fn
        self._started = time.monotonic()
        self._process = psutil.Process()
        self._task: asyncio.Task | None = None

        if register_defaults:
            self.add_health_check("memory", self._check_memory)
            self.add_health_check("uptime", self._check_uptime)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def add_health_check(self, name: str, check_fn: CheckFn) -> None:
        self._check_fns[name] = check_fn
        self.checks[name] = HealthCheckResult(name=name, status=CheckStatus.HEALTHY, response_time_ms=0.0)

    def remove_health_check(self, name: str) -> bool:
        self.checks.pop(name, None)
        return self._check_fns.pop(name, None) is not None

    @property
    def check_names(self) -> list[str]:
        return list(self._check_fns)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_health_checks(self) -> dict[str, HealthCheckResult]:
        results: dict[str, HealthCheckResult] = {}

        for name, check_fn in list(self._check_fns.items()):
            start = time.perf_counter()
            try:
                outcome = check_fn()
                if inspect.isawaitable(outcome):
                    outcome = await outcome
                if isinstance(outcome, CheckStatus):
                    outcome = CheckOutcome(status=outcome)
                results[name] = HealthCheckResult(
                    name=name,
                    status=outcome.status,
                    response_time_ms=(time.perf_counter() - start) * 1000,
                    error_message=outcome.message,
                    metadata=outcome.metadata,
                )
            except Exception as e:
                logger.warning(f"Health check {name} failed: {e}")
                results[name] = HealthCheckResult(
                    name=name,
                    status=CheckStatus.UNHEALTHY,
                    response_time_ms=(time.perf_counter() - start) * 1000,
                    error_message=str(e) or type(e).__name__,
                )

        self.checks = results
        self.update_health_score()
        return results

    def update_health_score(self) -> float:
        score = 100.0
        for check in self.checks.values():
            if check.status == CheckStatus.UNHEALTHY:
                score -= self.UNHEALTHY_PENALTY
            elif check.status == CheckStatus.DEGRADED:
                score -= self.DEGRADED_PENALTY

        # Lifetime error rate, not windowed
        if self.metrics.request_count > 0:
            error_rate = (self.metrics.error_count / self.metrics.request_count) * 100
            score -= min(error_rate * 2, self.MAX_ERROR_PENALTY)

        self.metrics.health_score = max(0.0, min(100.0, score))

        if self.metrics.health_score < self.CRITICAL_SCORE:
            self.events.emit(HealthEvent.HEALTH_CRITICAL, self.get_metrics())
        elif self.metrics.health_score < self.DEGRADED_SCORE:
            self.events.emit(HealthEvent.HEALTH_DEGRADED, self.get_metrics())

        return self.metrics.health_score

    # ------------------------------------------------------------------
    # Counters fed by the metrics collector
    # ------------------------------------------------------------------

    def record_request(self, response_time_ms: float) -> None:
        self.metrics.request_count += 1
        self.metrics.response_time_ms = (self.metrics.response_time_ms + response_time_ms) / 2

    def record_error(self) -> None:
        self.metrics.error_count += 1
        self.update_health_score()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def uptime_ms(self) -> float:
        return (time.monotonic() - self._started) * 1000

    def get_metrics(self) -> HealthMetrics:
        self.metrics.uptime_ms = self.uptime_ms
        try:
            mem = self._process.memory_info()
            self.metrics.memory_usage = {
                "rss": mem.rss,
                "vms": mem.vms,
                "percent": self._process.memory_percent(),
            }
            self.metrics.cpu_usage = self._process.cpu_percent(interval=None)
        except psutil.Error as e:
            logger.debug(f"Process introspection failed: {e}")
        return replace(self.metrics, memory_usage=dict(self.metrics.memory_usage))

    @classmethod
    def status_for_score(cls, score: float) -> CheckStatus:
        if score < cls.CRITICAL_SCORE:
            return CheckStatus.UNHEALTHY
        if score < cls.DEGRADED_SCORE:
            return CheckStatus.DEGRADED
        return CheckStatus.HEALTHY

    def get_health_status(self) -> HealthStatus:
        score = self.metrics.health_score
        return HealthStatus(
            status=self.status_for_score(score),
            score=score,
            checks=list(self.checks.values()),
        )

    def get_summary(self) -> dict[str, Any]:
        return {
            **self.get_health_status().to_dict(),
            "metrics": self.get_metrics().to_dict(),
            "monitoring": self.is_monitoring,
        }

    # ------------------------------------------------------------------
    # Interval
    # ------------------------------------------------------------------

    @property
    def is_monitoring(self) -> bool:
        return self._task is not None and not self._task.done()

    def start_monitoring(self, interval_seconds: float = 30.0) -> None:
        self.stop_monitoring()
        self._task = asyncio.get_running_loop().create_task(self._loop(interval_seconds))
        logger.info(f"Health monitoring started (every {interval_seconds}s)")

    def stop_monitoring(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Health monitoring stopped")

    async def _loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.run_health_checks()
            except Exception as e:
                logger.error(f"Health check cycle failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Built-in checks
    # ------------------------------------------------------------------

    def _check_memory(self) -> CheckOutcome:
        percent = self._memory_percent()
        if percent > self.MEMORY_CRITICAL_PCT:
            raise HealthCheckError(f"Memory usage critical: {percent:.2f}%")
        if percent > self.MEMORY_DEGRADED_PCT:
            return CheckOutcome(CheckStatus.DEGRADED, message=f"Memory usage high: {percent:.2f}%")
        return CheckOutcome(CheckStatus.HEALTHY)

    def _check_uptime(self) -> CheckOutcome:
        return CheckOutcome(CheckStatus.HEALTHY, metadata={"uptime": int(self.uptime_ms / 1000)})
