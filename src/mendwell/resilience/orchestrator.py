"""
Self-repair orchestrator — probe sub-scores, catalog bugs, run repairs.

One cycle, every few seconds:

    perform_health_check()   → vite / react / websocket / api / memory sub-scores
    detect_bugs()            → threshold rules add BugReports, deduplicated by id
    execute_auto_repairs()   → one repair per catalogued bug

Repairs are fire-and-forget: the bug leaves the catalog as soon as its
repair action returns or raises, whether or not the triggering condition
cleared. A condition that persists is re-detected and re-repaired on the
next cycle.

Repair actions are advisory. They write configuration artifacts, request
garbage collection, or restart a tracked helper process; they never
restart this server.
"""

from __future__ import annotations

import asyncio
import gc
import json
import logging
import shlex
import sys
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
import psutil

from mendwell.config import ARTIFACT_DIR
from mendwell.core.events import EventEmitter, RepairEvent
from mendwell.core.types import BugReport, BugType, Severity, SystemHealth

if TYPE_CHECKING:
    from mendwell.resilience.health import HealthMonitor

logger = logging.getLogger("mendwell.orchestrator")

MB = 1024 * 1024

WEBSOCKET_SCORE = 85
DATABASE_SCORE = 100
REACT_MARKERS = ("react", "React")
FALLBACK_MARKER = "Mendwell Fallback Dashboard"

DEV_SERVER_BYPASS_FILE = "dev-server-bypass.json"
STATIC_SERVING_FILE = "static-serving.json"
FALLBACK_ENTRY_FILE = "fallback-entry.html"

FALLBACK_PAGE = f"""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{FALLBACK_MARKER}</title>
</head>
<body>
  <main id="root">
    <h1>{FALLBACK_MARKER}</h1>
    <p>The client bundle is unavailable. Service status:
       <a href="/health">/health</a> and <a href="/api/systems/diagnostics">/api/systems/diagnostics</a>.</p>
  </main>
</body>
</html>
"""

RepairAction = Callable[[], Awaitable[None]]


# ---------------------------------------------------------------------------
# Detection rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DetectionRule:
    sub_score: str
    threshold: int
    bug_id: str
    bug_type: BugType
    severity: Severity
    description: str
    solution: str

    def fires(self, health: SystemHealth) -> bool:
        return getattr(health, self.sub_score) < self.threshold

    def to_bug(self) -> BugReport:
        return BugReport(
            id=self.bug_id, type=self.bug_type, severity=self.severity,
            description=self.description, solution=self.solution, auto_fixable=True,
        )


DETECTION_RULES: tuple[DetectionRule, ...] = (
    DetectionRule(
        sub_score="vite", threshold=50, bug_id="vite-connection-failure",
        bug_type=BugType.VITE, severity=Severity.CRITICAL,
        description="Dev server connection failing - hot reload not functional",
        solution="Restart the dev server with the correct port and bypass its middleware",
    ),
    DetectionRule(
        sub_score="react", threshold=50, bug_id="react-mount-failure",
        bug_type=BugType.REACT, severity=Severity.CRITICAL,
        description="Client application not mounting properly",
        solution="Fix component dependencies and ensure proper root mounting",
    ),
    DetectionRule(
        sub_score="memory", threshold=60, bug_id="memory-leak-detected",
        bug_type=BugType.MEMORY, severity=Severity.HIGH,
        description="Memory usage exceeding normal thresholds",
        solution="Force garbage collection and clear unused references",
    ),
)


def memory_score(used_mb: float) -> int:
    if used_mb < 200:
        return 100
    if used_mb < 400:
        return 80
    if used_mb < 600:
        return 60
    return 40


def process_memory_bytes() -> int:
    return psutil.Process().memory_info().rss


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class SelfRepairOrchestrator:
    """
    Top-level detect-and-repair loop.

    Args:
        health_monitor: When given, the ``api`` sub-score is read from it
            in-process instead of fetching ``/health`` over HTTP.
        http_client: Client for the HTTP probes. One is created against
            ``base_url`` (and closed on shutdown) when omitted.
        base_url: Where this process serves HTTP; the ``react`` probe fetches ``/``.
        dev_server_url: Dev-server asset URL. When unset the ``vite``
            sub-score is a constant 100.
        dev_server_command: Command line restarting the dev server during
            repair (development only).
        artifact_dir: Directory receiving repair artifacts.
        memory_fn: Returns process memory in bytes for the ``memory`` sub-score.
    """

    def __init__(
        self,
        health_monitor: HealthMonitor | None = None,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = "http://127.0.0.1:5000",
        dev_server_url: str | None = None,
        dev_server_command: str | None = None,
        artifact_dir: Path = ARTIFACT_DIR,
        probe_timeout_seconds: float = 2.0,
        interval_seconds: float = 5.0,
        healing_cycle_interval_seconds: float = 30.0,
        memory_fn: Callable[[], int] = process_memory_bytes,
    ):
        self.events: EventEmitter[RepairEvent] = EventEmitter(RepairEvent)
        self.system_health = SystemHealth(database=DATABASE_SCORE)
        self.health_monitor = health_monitor
        self.base_url = base_url.rstrip("/")
        self.dev_server_url = dev_server_url
        self.dev_server_command = dev_server_command
        self.artifact_dir = Path(artifact_dir)
        self.probe_timeout_seconds = probe_timeout_seconds
        self.interval_seconds = interval_seconds
        self.healing_cycle_interval_seconds = healing_cycle_interval_seconds
        self._memory_fn = memory_fn

        self._client = http_client
        self._owns_client = http_client is None
        self._bugs: list[BugReport] = []
        self._processes: dict[str, asyncio.subprocess.Process] = {}
        self._dev_server_process: asyncio.subprocess.Process | None = None
        self._cycle_running = False
        self._repairing: set[str] = set()
        self._tasks: list[asyncio.Task] = []
        self._hooks: dict[str, Any] = {}

        self._repairs: dict[BugType, RepairAction] = {
            BugType.VITE: self._repair_dev_server,
            BugType.REACT: self._repair_client_entry,
            BugType.MEMORY: self._repair_memory,
            BugType.WEBSOCKET: self._repair_websocket,
        }

    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.probe_timeout_seconds)
        return self._client

    def register_repair(self, bug_type: BugType, action: RepairAction) -> None:
        """Replace the repair action run for ``bug_type``."""
        self._repairs[bug_type] = action

    # -----------------------------------------------------------------------
    # Probes
    # -----------------------------------------------------------------------

    async def _get(self, url: str) -> httpx.Response:
        return await asyncio.wait_for(self.http.get(url), timeout=self.probe_timeout_seconds)

    async def check_dev_server_health(self) -> int:
        if not self.dev_server_url:
            return 100
        try:
            response = await self._get(self.dev_server_url)
            return 100 if response.status_code < 500 else 0
        except Exception as e:
            logger.debug(f"Dev server probe failed: {e!r}")
            return 0

    async def check_react_health(self) -> int:
        try:
            response = await self._get(f"{self.base_url}/")
            html = response.text
        except Exception as e:
            logger.debug(f"Client page probe failed: {e!r}")
            return 0
        if any(marker in html for marker in REACT_MARKERS):
            return 100
        return 80 if FALLBACK_MARKER in html else 0

    async def check_websocket_health(self) -> int:
        # Not measured
        return WEBSOCKET_SCORE

    async def check_api_health(self) -> int:
        if self.health_monitor is not None:
            return int(self.health_monitor.get_health_status().score)
        try:
            response = await self._get(f"{self.base_url}/health")
            data = response.json()
            return int((data.get("health") or {}).get("score") or 0)
        except Exception as e:
            logger.debug(f"API probe failed: {e!r}")
            return 0

    async def check_memory_health(self) -> int:
        try:
            used = self._memory_fn()
        except Exception as e:
            logger.debug(f"Memory probe failed: {e!r}")
            return 0
        return memory_score(used / MB)

    # -----------------------------------------------------------------------
    # Cycle
    # -----------------------------------------------------------------------

    async def perform_health_check(self) -> SystemHealth:
        h = self.system_health
        h.vite = await self.check_dev_server_health()
        h.react = await self.check_react_health()
        h.websocket = await self.check_websocket_health()
        h.api = await self.check_api_health()
        h.memory = await self.check_memory_health()
        h.overall = (h.vite + h.react + h.websocket + h.api + h.memory) // 5

        self.events.emit(RepairEvent.HEALTH_UPDATE, h.to_dict())
        return replace(h)

    def catalog_bug(self, bug: BugReport) -> bool:
        """Add ``bug`` unless an entry with the same id is already catalogued."""
        if any(b.id == bug.id for b in self._bugs):
            return False
        self._bugs.append(bug)
        logger.warning(f"Detected {bug.severity.value} bug {bug.id}: {bug.description}")
        self.events.emit(RepairEvent.BUG_DETECTED, bug.to_dict())
        return True

    def detect_bugs(self) -> list[BugReport]:
        return [bug for bug in (r.to_bug() for r in DETECTION_RULES if r.fires(self.system_health))
                if self.catalog_bug(bug)]

    def _awaiting_repair(self, bug: BugReport) -> bool:
        return bug.id not in self._repairing and any(b.id == bug.id for b in self._bugs)

    async def repair(self, bug: BugReport) -> bool:
        """Run the repair for ``bug`` and drop it from the catalog regardless of outcome.

        A bug already under repair, or no longer catalogued, is skipped.
        """
        if not self._awaiting_repair(bug):
            logger.debug(f"Repair of {bug.id} already in progress or done; skipping")
            return False
        action = self._repairs.get(bug.type)
        success = False
        self._repairing.add(bug.id)
        try:
            if action is None:
                logger.info(f"No repair action for {bug.type.value} bug {bug.id}")
            else:
                logger.info(f"Repairing {bug.id}")
                await action()
                success = True
        except Exception as e:
            logger.error(f"Repair of {bug.id} failed: {e}", exc_info=True)
        finally:
            self._repairing.discard(bug.id)
            self._bugs = [b for b in self._bugs if b.id != bug.id]
        return success

    async def execute_auto_repairs(self) -> int:
        self._prune_processes()
        repaired = 0
        for bug in list(self._bugs):
            if bug.auto_fixable and bug.id not in self._processes and self._awaiting_repair(bug):
                await self.repair(bug)
                repaired += 1
        return repaired

    async def run_cycle(self) -> bool:
        """One detect-and-repair pass. Skipped while a previous pass is still running."""
        if self._cycle_running:
            logger.debug("Repair cycle still in progress; skipping tick")
            return False
        self._cycle_running = True
        try:
            await self.perform_health_check()
            self.detect_bugs()
            await self.execute_auto_repairs()
        finally:
            self._cycle_running = False
        return True

    async def perform_emergency_repair(self) -> SystemHealth:
        logger.warning("Performing emergency repair")
        for bug in [b for b in self._bugs if b.severity == Severity.CRITICAL]:
            await self.repair(bug)
        return await self.perform_health_check()

    def get_system_health(self) -> SystemHealth:
        return replace(self.system_health)

    def get_bug_report(self) -> list[BugReport]:
        return list(self._bugs)

    # -----------------------------------------------------------------------
    # Repair actions
    # -----------------------------------------------------------------------

    def _write_artifact(self, name: str, content: str) -> Path:
        self.artifact_dir.mkdir(parents=True, exist_ok=True)
        path = self.artifact_dir / name
        path.write_text(content, encoding="utf-8")
        return path

    def write_dev_server_bypass(self) -> Path:
        config = {
            "devServerDisabled": True,
            "strategy": "static-serving",
            "staticMounts": {"/assets": "client/assets", "/public": "public"},
            "blockedPrefixes": ["/@vite", "/@fs/"],
            "blockedResponse": {"status": 404, "body": "Dev server middleware disabled for stability"},
            "generatedAt": datetime.now(UTC).isoformat(),
        }
        path = self._write_artifact(DEV_SERVER_BYPASS_FILE, json.dumps(config, indent=2))
        logger.info(f"Dev server bypass written to {path}")
        return path

    def write_static_serving_config(self) -> Path:
        config = {
            "viteDisabled": True,
            "staticServing": True,
            "reason": "Prevent dev server connection failures",
            "timestamp": datetime.now(UTC).isoformat(),
        }
        return self._write_artifact(STATIC_SERVING_FILE, json.dumps(config, indent=2))

    async def _repair_dev_server(self) -> None:
        if self._dev_server_process is not None:
            await self._terminate(self._dev_server_process)
            self._dev_server_process = None

        self.write_dev_server_bypass()

        if self.dev_server_command:
            proc = await asyncio.create_subprocess_exec(*shlex.split(self.dev_server_command))
            self._dev_server_process = proc
            self._processes["vite-connection-failure"] = proc
            logger.info(f"Dev server restarted (pid {proc.pid})")

    async def _repair_client_entry(self) -> None:
        path = self._write_artifact(FALLBACK_ENTRY_FILE, FALLBACK_PAGE)
        logger.info(f"Fallback client entry written to {path}")

    async def _repair_memory(self) -> None:
        collected = gc.collect()
        self._processes.clear()
        logger.info(f"Memory cleanup collected {collected} objects")

    async def _repair_websocket(self) -> None:
        logger.info("WebSocket repair requested; transport healing is handled by the connection healer")

    # -----------------------------------------------------------------------
    # Helper processes
    # -----------------------------------------------------------------------

    def _prune_processes(self) -> None:
        for bug_id, proc in list(self._processes.items()):
            if proc.returncode is not None:
                del self._processes[bug_id]

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
            await asyncio.wait_for(proc.wait(), timeout=5)
        except ProcessLookupError:
            pass
        except asyncio.TimeoutError:
            proc.kill()

    # -----------------------------------------------------------------------
    # Process-wide error interception
    # -----------------------------------------------------------------------

    def _install_error_hooks(self) -> None:
        loop = asyncio.get_running_loop()
        self._hooks = {
            "sys": sys.excepthook,
            "thread": threading.excepthook,
            "loop": loop,
            "loop_handler": loop.get_exception_handler(),
        }
        sys.excepthook = self._on_uncaught
        threading.excepthook = self._on_thread_exception
        loop.set_exception_handler(self._on_loop_exception)

    def _restore_error_hooks(self) -> None:
        if not self._hooks:
            return
        sys.excepthook = self._hooks["sys"]
        threading.excepthook = self._hooks["thread"]
        loop = self._hooks["loop"]
        if not loop.is_closed():
            loop.set_exception_handler(self._hooks["loop_handler"])
        self._hooks = {}

    def _on_uncaught(self, exc_type, exc, tb) -> None:
        logger.error(f"Uncaught exception: {exc}")
        self.events.emit(RepairEvent.CRITICAL_ERROR, exc)
        self._hooks.get("sys", sys.__excepthook__)(exc_type, exc, tb)

    def _on_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        logger.error(f"Uncaught exception in thread {args.thread}: {args.exc_value}")
        self.events.emit(RepairEvent.CRITICAL_ERROR, args.exc_value)
        self._hooks.get("thread", threading.__excepthook__)(args)

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        error = context.get("exception") or context.get("message")
        logger.error(f"Unhandled rejection: {error}")
        self.events.emit(RepairEvent.CRITICAL_ERROR, error)
        previous = self._hooks.get("loop_handler")
        if previous is not None:
            previous(loop, context)
        else:
            loop.default_exception_handler(context)

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        self.stop()
        loop = asyncio.get_running_loop()
        self._install_error_hooks()
        try:
            self.write_static_serving_config()
        except OSError as e:
            logger.error(f"Failed to save static serving config: {e}")
        self._tasks = [
            loop.create_task(self._monitor_loop()),
            loop.create_task(self._healing_cycle_loop()),
        ]
        logger.info("Self-repair orchestrator started")

    def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks = []
        self._restore_error_hooks()

    async def shutdown(self) -> None:
        self.stop()
        for proc in list(self._processes.values()):
            await self._terminate(proc)
        self._processes.clear()
        if self._dev_server_process is not None:
            await self._terminate(self._dev_server_process)
            self._dev_server_process = None
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Self-repair orchestrator shut down")

    async def _monitor_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(f"Repair cycle failed: {e}", exc_info=True)

    async def _healing_cycle_loop(self) -> None:
        while True:
            await asyncio.sleep(self.healing_cycle_interval_seconds)
            self.events.emit(RepairEvent.HEALING_CYCLE, {
                "timestamp": datetime.now(UTC).isoformat(),
                "systemHealth": self.system_health.to_dict(),
                "activeBugs": len(self._bugs),
            })
