"""Mendwell core types and event kinds."""

from .events import EventEmitter, HealerEvent, HealthEvent, RepairEvent
from .types import (
    BugReport,
    BugType,
    CheckOutcome,
    CheckStatus,
    ConnectionHealth,
    HealthCheckResult,
    HealthMetrics,
    HealthStatus,
    PerformanceSnapshot,
    Percentiles,
    RequestSample,
    Severity,
    SystemHealth,
)

__all__ = [
    "BugReport",
    "BugType",
    "CheckOutcome",
    "CheckStatus",
    "ConnectionHealth",
    "EventEmitter",
    "HealerEvent",
    "HealthCheckResult",
    "HealthEvent",
    "HealthMetrics",
    "HealthStatus",
    "PerformanceSnapshot",
    "Percentiles",
    "RepairEvent",
    "RequestSample",
    "Severity",
    "SystemHealth",
]
