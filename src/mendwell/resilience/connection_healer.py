"""
Connection healer — transport counters, a fixed pulse, and an emergency reset.

The healer never closes or restarts a connection itself. A pulse samples
the counters and announces them; ``emergency_heal`` resets the error
counters and announces the reset. Whoever listens on ``events`` performs
the actual remediation.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from mendwell.core.events import EventEmitter, HealerEvent
from mendwell.core.types import ConnectionHealth

logger = logging.getLogger("mendwell.connection_healer")

PULSE_INTERVAL_SECONDS = 5.0
CONNECTION_LISTENER_LIMIT = 100


class ConnectionHealer:
    """Counts transport events and pulses them to listeners.

    Args:
        pulse_interval_seconds: Delay between pulses once started.
        listener_limit: Open-connection count above which a pulse counts an error.
        connection_count_fn: Returns the current number of open connections;
            defaults to the counter kept by ``connection_opened/closed``.
    """

    def __init__(
        self,
        pulse_interval_seconds: float = PULSE_INTERVAL_SECONDS,
        listener_limit: int = CONNECTION_LISTENER_LIMIT,
        connection_count_fn: Callable[[], int] | None = None,
    ):
        self.pulse_interval_seconds = pulse_interval_seconds
        self.listener_limit = listener_limit
        self.events: EventEmitter[HealerEvent] = EventEmitter(HealerEvent)
        self.health = ConnectionHealth()
        self._connection_count = connection_count_fn or (lambda: self.health.open_connections)
        self._task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Counters (called from the host's hooks)
    # ------------------------------------------------------------------

    def record_error(self) -> None:
        self.health.error_count += 1

    def record_http_request(self) -> None:
        self.health.http_requests += 1

    def record_dev_server_connection(self) -> None:
        self.health.dev_server_connections += 1

    def record_websocket_connection(self) -> None:
        self.health.ws_connections += 1

    def connection_opened(self) -> None:
        self.health.open_connections += 1

    def connection_closed(self) -> None:
        self.health.open_connections = max(0, self.health.open_connections - 1)

    def get_health(self) -> ConnectionHealth:
        return replace(self.health)

    # ------------------------------------------------------------------
    # Pulse
    # ------------------------------------------------------------------

    def pulse(self) -> dict[str, Any]:
        self.health.healing_attempts += 1
        self.health.last_heal_at = datetime.now(UTC)

        payload = {
            "timestamp": int(time.time() * 1000),
            "health": self.get_health().to_dict(),
            "suggestion": "client-reconnect",
        }
        self.events.emit(HealerEvent.HEALING_PULSE, payload)

        self._check_connection_load()
        return payload

    def _check_connection_load(self) -> None:
        count = self._connection_count()
        if count > self.listener_limit:
            logger.warning(f"Excessive open connections ({count} > {self.listener_limit})")
            self.health.error_count += 1

    def emergency_heal(self) -> dict[str, Any]:
        logger.warning("Emergency healing activated")
        payload = {
            "action": "force-reconnect",
            "timestamp": int(time.time() * 1000),
            "message": "Emergency healing in progress",
        }
        self.events.emit(HealerEvent.EMERGENCY_HEAL, payload)

        self.health.error_count = 0
        self.health.healing_attempts = 0
        return payload

    # ------------------------------------------------------------------
    # Interval
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"Connection healer pulsing every {self.pulse_interval_seconds}s")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.pulse_interval_seconds)
            try:
                self.pulse()
            except Exception as e:
                logger.error(f"Healing pulse failed: {e}", exc_info=True)
