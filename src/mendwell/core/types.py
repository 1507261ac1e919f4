"""
Runtime health types — the shared vocabulary of every mendwell component.

Samples, snapshots, check results, bug reports and counters are plain
dataclasses with ``to_dict`` helpers producing the camelCase JSON shape
served by the HTTP endpoints.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CheckStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class BugType(str, Enum):
    VITE = "vite"
    REACT = "react"
    WEBSOCKET = "websocket"
    API = "api"
    MEMORY = "memory"
    CONNECTION = "connection"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Metrics collector
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RequestSample:
    response_time_ms: float
    status_code: int

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400


@dataclass(frozen=True)
class Percentiles:
    p50: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"p50": self.p50, "p90": self.p90, "p95": self.p95, "p99": self.p99}


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Derived view of the collector; recomputed on every read."""
    request_count: int
    error_count: int
    average_response_time_ms: float
    slow_request_count: int
    peak_memory_bytes: int
    percentiles: Percentiles
    error_rate_pct: float
    slow_request_rate_pct: float

    @property
    def memory_usage_mb(self) -> int:
        return round(self.peak_memory_bytes / 1024 / 1024)

    def to_dict(self) -> dict[str, Any]:
        return {
            "requestCount": self.request_count,
            "averageResponseTime": self.average_response_time_ms,
            "errorCount": self.error_count,
            "slowRequestCount": self.slow_request_count,
            "peakMemoryUsage": self.peak_memory_bytes,
            "responseTimePercentiles": self.percentiles.to_dict(),
            "errorRate": self.error_rate_pct,
            "slowRequestRate": self.slow_request_rate_pct,
            "memoryUsageMB": self.memory_usage_mb,
        }


# ---------------------------------------------------------------------------
# Health monitor
# ---------------------------------------------------------------------------

@dataclass
class CheckOutcome:
    """What a registered check function returns."""
    status: CheckStatus
    message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthCheckResult:
    name: str
    status: CheckStatus
    response_time_ms: float
    last_checked_at: datetime = field(default_factory=_utcnow)
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "responseTime": self.response_time_ms,
            "lastCheck": self.last_checked_at.isoformat(),
        }
        if self.error_message is not None:
            d["errorMessage"] = self.error_message
        if self.metadata:
            d["metadata"] = self.metadata
        return d


@dataclass
class HealthMetrics:
    uptime_ms: float = 0.0
    memory_usage: dict[str, float] = field(default_factory=dict)
    cpu_usage: float = 0.0
    request_count: int = 0
    error_count: int = 0
    response_time_ms: float = 0.0
    db_connection_status: bool = False
    health_score: float = 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "uptime": self.uptime_ms,
            "memoryUsage": self.memory_usage,
            "cpuUsage": self.cpu_usage,
            "requestCount": self.request_count,
            "errorCount": self.error_count,
            "responseTime": self.response_time_ms,
            "dbConnectionStatus": self.db_connection_status,
            "healthScore": self.health_score,
        }


@dataclass
class HealthStatus:
    status: CheckStatus
    score: float
    checks: list[HealthCheckResult]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "score": self.score,
            "checks": [c.to_dict() for c in self.checks],
        }


# ---------------------------------------------------------------------------
# Connection healer
# ---------------------------------------------------------------------------

@dataclass
class ConnectionHealth:
    open_connections: int = 0
    dev_server_connections: int = 0
    ws_connections: int = 0
    http_requests: int = 0
    error_count: int = 0
    healing_attempts: int = 0
    last_heal_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "openConnections": self.open_connections,
            "viteConnections": self.dev_server_connections,
            "websocketConnections": self.ws_connections,
            "httpRequests": self.http_requests,
            "errorCount": self.error_count,
            "healingAttempts": self.healing_attempts,
            "lastHealTime": self.last_heal_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Self-repair orchestrator
# ---------------------------------------------------------------------------

@dataclass
class SystemHealth:
    overall: int = 0
    vite: int = 0
    react: int = 0
    websocket: int = 100
    database: int = 100
    api: int = 100
    memory: int = 100

    def to_dict(self) -> dict[str, int]:
        return {
            "overall": self.overall,
            "vite": self.vite,
            "react": self.react,
            "websocket": self.websocket,
            "database": self.database,
            "api": self.api,
            "memory": self.memory,
        }


@dataclass
class BugReport:
    id: str
    type: BugType
    severity: Severity
    description: str
    solution: str
    auto_fixable: bool = True
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "solution": self.solution,
            "autoFixable": self.auto_fixable,
            "timestamp": self.timestamp.isoformat(),
        }
