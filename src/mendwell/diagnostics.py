"""
Diagnostics reporter — read-only view over the orchestrator's state.

Combines the current sub-scores, the bug catalog, threshold-keyed
recommendations and a fixed description of the target serving
architecture. The two ``trigger_*`` methods are thin proxies onto the
orchestrator for the repair endpoints.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from mendwell.core.types import BugReport, SystemHealth
from mendwell.resilience.orchestrator import SelfRepairOrchestrator

logger = logging.getLogger("mendwell.diagnostics")

# Reported until an orchestrator is attached
DEFAULT_SYSTEM_HEALTH = SystemHealth(overall=85, vite=0, react=80, websocket=85, database=100, api=100, memory=90)

DEV_SERVER_STATUS: dict[str, Any] = {
    "status": "critical",
    "issues": [
        "HMR WebSocket connection failures",
        "Port mismatch between client and server",
        "Middleware mode conflicts",
        "Invalid frame headers in WebSocket",
        "403 authentication errors",
    ],
    "rootCause": "Dev server middleware mode incompatible with the application server",
    "impact": "Client application fails to load, development experience broken",
}

TARGET_ARCHITECTURE: dict[str, Any] = {
    "title": "Standalone dev server with application-server bridge",
    "approach": "Hybrid Architecture",
    "components": [
        {
            "name": "Standalone Dev Server",
            "purpose": "Dedicated development server on port 5173",
            "configuration": "Proxy API calls to the application server on port 5000",
        },
        {
            "name": "Application Server",
            "purpose": "Handle API, static files, and the fallback dashboard",
            "configuration": "Serve the built client in production mode",
        },
        {
            "name": "Environment Bridge",
            "purpose": "Seamless integration between development and production",
            "configuration": "Detect the environment and adapt accordingly",
        },
    ],
    "benefits": [
        "Eliminates dev server middleware conflicts",
        "Maintains hot reload functionality",
        "Provides a fallback dashboard",
        "Scales from development to production unchanged",
    ],
    "implementation": "Automatic detection and deployment based on environment",
}


def generate_recommendations(health: SystemHealth, bugs: list[BugReport]) -> list[dict[str, str]]:
    recommendations = []
    if health.vite < 50:
        recommendations.append({
            "priority": "critical",
            "action": "Run a standalone dev server with proxy configuration",
            "reason": "Current middleware mode causing connection failures",
        })
    if health.react < 80:
        recommendations.append({
            "priority": "high",
            "action": "Simplify client component dependencies and ensure proper mounting",
            "reason": "Component mounting issues detected",
        })
    if len(bugs) > 3:
        recommendations.append({
            "priority": "medium",
            "action": "Enable automated bug repair cycles",
            "reason": "Multiple bugs detected requiring systematic repair",
        })
    return recommendations


class DiagnosticsReporter:
    """Formats orchestrator state for external pollers."""

    def __init__(self, orchestrator: SelfRepairOrchestrator | None = None):
        self.orchestrator = orchestrator

    def attach(self, orchestrator: SelfRepairOrchestrator) -> None:
        self.orchestrator = orchestrator

    def build_diagnostics(self) -> dict[str, Any]:
        if self.orchestrator is not None:
            health = self.orchestrator.get_system_health()
            bugs = self.orchestrator.get_bug_report()
        else:
            health, bugs = DEFAULT_SYSTEM_HEALTH, []

        return {
            "timestamp": datetime.now(UTC).isoformat(),
            "systemHealth": health.to_dict(),
            "bugReport": [b.to_dict() for b in bugs],
            "recommendations": generate_recommendations(health, bugs),
            "viteStatus": DEV_SERVER_STATUS,
            "ultimateSolution": TARGET_ARCHITECTURE,
        }

    def trigger_dev_server_solution(self) -> dict[str, Any]:
        """Write the dev-server bypass artifact. Raises ``OSError`` if it cannot be written."""
        solution: dict[str, Any] = {
            "phase1": "Standalone dev server configuration",
            "phase2": "Application server optimization",
            "phase3": "Bridge component integration",
            "phase4": "Fallback dashboard activation",
            "status": "Ready for deployment",
        }
        if self.orchestrator is not None:
            solution["artifact"] = str(self.orchestrator.write_dev_server_bypass())
        return solution

    async def trigger_emergency_repair(self) -> bool:
        if self.orchestrator is None:
            logger.info("Emergency repair requested before orchestrator start; nothing to repair")
            return False
        await self.orchestrator.perform_emergency_repair()
        return True
