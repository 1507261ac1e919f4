"""
Mendwell — a self-monitoring and self-healing runtime for web services.

Watches the hosting process, scores its health, catalogs recognised
failure patterns and runs advisory repairs against them.

Quick start::

    pip install mendwell
    mendwell --port 5000

    # Poll the runtime:
    httpx.get("http://localhost:5000/health")
    httpx.get("http://localhost:5000/api/systems/diagnostics")
"""

__version__ = "0.1.0"

from mendwell.config import MendwellConfig, get_config, load_config
from mendwell.core.types import (
    BugReport,
    BugType,
    CheckOutcome,
    CheckStatus,
    ConnectionHealth,
    HealthCheckResult,
    PerformanceSnapshot,
    Severity,
    SystemHealth,
)
from mendwell.runtime import Runtime

__all__ = [
    # Core types
    "BugReport",
    "BugType",
    "CheckOutcome",
    "CheckStatus",
    "ConnectionHealth",
    "HealthCheckResult",
    "PerformanceSnapshot",
    "Severity",
    "SystemHealth",
    # Config
    "load_config",
    "get_config",
    "MendwellConfig",
    # Runtime
    "Runtime",
]
