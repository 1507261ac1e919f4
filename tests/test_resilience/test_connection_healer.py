"""Tests for the connection healer."""

import asyncio

import pytest

from mendwell.core.events import HealerEvent
from mendwell.resilience.connection_healer import ConnectionHealer


class TestCounters:
    def test_counters(self):
        healer = ConnectionHealer()
        healer.record_http_request()
        healer.record_http_request()
        healer.record_dev_server_connection()
        healer.record_websocket_connection()
        healer.record_error()

        health = healer.get_health()
        assert health.http_requests == 2
        assert health.dev_server_connections == 1
        assert health.ws_connections == 1
        assert health.error_count == 1

    def test_open_connections_never_negative(self):
        healer = ConnectionHealer()
        healer.connection_opened()
        healer.connection_closed()
        healer.connection_closed()
        assert healer.get_health().open_connections == 0

    def test_get_health_is_a_copy(self):
        healer = ConnectionHealer()
        snapshot = healer.get_health()
        healer.record_error()
        assert snapshot.error_count == 0


class TestPulse:
    def test_pulse_emits_counters(self):
        healer = ConnectionHealer()
        healer.record_error()
        pulses = []
        healer.events.on(HealerEvent.HEALING_PULSE, pulses.append)

        payload = healer.pulse()

        assert pulses == [payload]
        assert payload["suggestion"] == "client-reconnect"
        assert payload["health"]["errorCount"] == 1
        assert payload["health"]["healingAttempts"] == 1
        assert isinstance(payload["timestamp"], int)

    def test_pulse_counts_attempts(self):
        healer = ConnectionHealer()
        healer.pulse()
        healer.pulse()
        assert healer.get_health().healing_attempts == 2

    def test_excess_connections_count_an_error(self):
        healer = ConnectionHealer(listener_limit=2, connection_count_fn=lambda: 3)
        healer.pulse()
        assert healer.get_health().error_count == 1

    def test_connections_at_limit_are_fine(self):
        healer = ConnectionHealer(listener_limit=3, connection_count_fn=lambda: 3)
        healer.pulse()
        assert healer.get_health().error_count == 0


class TestEmergencyHeal:
    def test_resets_error_counters(self):
        healer = ConnectionHealer()
        for _ in range(12):
            healer.record_error()
        healer.pulse()
        healer.record_http_request()

        healer.emergency_heal()

        health = healer.get_health()
        assert health.error_count == 0
        assert health.healing_attempts == 0
        assert health.http_requests == 1

    def test_emits_force_reconnect(self):
        healer = ConnectionHealer()
        seen = []
        healer.events.on(HealerEvent.EMERGENCY_HEAL, seen.append)

        healer.emergency_heal()

        assert len(seen) == 1
        assert seen[0]["action"] == "force-reconnect"


class TestInterval:
    async def test_loop_pulses(self):
        healer = ConnectionHealer(pulse_interval_seconds=0.01)
        pulsed = asyncio.Event()
        healer.events.on(HealerEvent.HEALING_PULSE, lambda _: pulsed.set())

        healer.start()
        try:
            await asyncio.wait_for(pulsed.wait(), timeout=1)
            assert healer.is_running
        finally:
            healer.stop()
        assert not healer.is_running

    async def test_restart_cancels_previous(self):
        healer = ConnectionHealer(pulse_interval_seconds=60)
        healer.start()
        first = healer._task
        healer.start()
        with pytest.raises(asyncio.CancelledError):
            await first
        healer.stop()
