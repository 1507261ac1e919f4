"""Resilience layer — metrics, health monitoring, connection healing, self-repair."""

from .connection_healer import ConnectionHealer
from .health import HealthCheckError, HealthMonitor
from .metrics import MetricsCollector
from .orchestrator import DETECTION_RULES, DetectionRule, SelfRepairOrchestrator

__all__ = [
    "ConnectionHealer",
    "DETECTION_RULES",
    "DetectionRule",
    "HealthCheckError",
    "HealthMonitor",
    "MetricsCollector",
    "SelfRepairOrchestrator",
]
