"""Shared fixtures for the Mendwell test suite."""

import httpx
import pytest

from mendwell.config import MendwellConfig
from mendwell.resilience.health import HealthMonitor


@pytest.fixture
def mendwell_config(tmp_path):
    """A development config whose artifacts land in a temp dir."""
    return MendwellConfig(
        port=5999,
        artifact_dir=tmp_path / "artifacts",
        probe_base_url="http://testserver",
    )


@pytest.fixture
def quiet_monitor():
    """A HealthMonitor without the built-in checks and with calm memory."""
    return HealthMonitor(memory_percent_fn=lambda: 10.0, register_defaults=False)


def html_transport(body: str, status_code: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text=body)
    return httpx.MockTransport(handler)


@pytest.fixture
def react_client():
    """HTTP client whose every GET returns a page mounting a React root."""
    return httpx.AsyncClient(
        base_url="http://testserver",
        transport=html_transport('<div id="root"></div><script src="/react-dom.js"></script>'),
    )
