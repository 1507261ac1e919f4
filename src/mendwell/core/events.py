"""
Typed observer — per-component event fan-out.

Each component declares a closed ``Enum`` of the events it can emit and
owns an ``EventEmitter`` keyed by that enum. Listeners are plain callables
taking the payload; coroutine listeners are scheduled on the running loop.
A failing listener is logged and never reaches the emitter.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any, Generic, TypeVar

logger = logging.getLogger("mendwell.events")

E = TypeVar("E", bound=Enum)

Listener = Callable[[Any], Any]


class HealthEvent(str, Enum):
    HEALTH_CRITICAL = "healthCritical"
    HEALTH_DEGRADED = "healthDegraded"


class HealerEvent(str, Enum):
    HEALING_PULSE = "healingPulse"
    EMERGENCY_HEAL = "emergencyHeal"


class RepairEvent(str, Enum):
    HEALTH_UPDATE = "healthUpdate"
    BUG_DETECTED = "bugDetected"
    HEALING_CYCLE = "healingCycle"
    CRITICAL_ERROR = "criticalError"


class EventEmitter(Generic[E]):
    """Listener registry restricted to one enum of event kinds."""

    def __init__(self, kinds: type[E]):
        self._kinds = kinds
        self._listeners: dict[E, list[Listener]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def on(self, kind: E, listener: Listener) -> None:
        self._check(kind)
        self._listeners[kind].append(listener)

    def off(self, kind: E, listener: Listener) -> bool:
        self._check(kind)
        try:
            self._listeners[kind].remove(listener)
            return True
        except ValueError:
            return False

    def listener_count(self, kind: E) -> int:
        self._check(kind)
        return len(self._listeners[kind])

    def emit(self, kind: E, payload: Any = None) -> None:
        self._check(kind)
        for listener in list(self._listeners[kind]):
            try:
                result = listener(payload)
            except Exception as e:
                logger.error(f"Listener for {kind.value} failed: {e}", exc_info=True)
                continue
            if inspect.isawaitable(result):
                self._schedule(kind, result)

    def _schedule(self, kind: E, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running loop for async listener of {kind.value}; dropped")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._finish(kind, t))

    def _finish(self, kind: E, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Async listener for {kind.value} failed: {exc}")

    def _check(self, kind: E) -> None:
        if not isinstance(kind, self._kinds):
            raise TypeError(f"{kind!r} is not a {self._kinds.__name__}")
