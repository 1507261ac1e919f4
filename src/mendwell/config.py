"""
Mendwell configuration.

Server, sampling intervals, repair policy and artifact locations.
Reads from ~/.mendwell/config.toml with environment variable overrides.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

MENDWELL_HOME = Path(os.getenv("MENDWELL_HOME", Path.home() / ".mendwell"))
CONFIG_PATH = MENDWELL_HOME / "config.toml"
ARTIFACT_DIR = MENDWELL_HOME / "artifacts"

PRODUCTION_ENVIRONMENTS = frozenset({"production", "prod"})


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class MendwellConfig:
    """Top-level Mendwell configuration."""

    # Server
    host: str = "0.0.0.0"
    port: int = 5000
    environment: str = "development"
    version: str = "0.1.0"
    static_dir: Path | None = None

    # Metrics collector
    metrics_window: int = 1000
    slow_request_ms: float = 2000.0

    # Health monitor
    health_interval_seconds: float = 30.0

    # Connection healer
    pulse_interval_seconds: float = 5.0
    emergency_error_threshold: int = 10
    connection_listener_limit: int = 100

    # Self-repair
    self_repair_enabled: bool = True
    repair_interval_seconds: float = 5.0
    healing_cycle_interval_seconds: float = 30.0
    probe_timeout_seconds: float = 2.0
    probe_base_url: str | None = None
    dev_server_url: str | None = None
    dev_server_command: str | None = None
    artifact_dir: Path = ARTIFACT_DIR

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in PRODUCTION_ENVIRONMENTS

    @property
    def loopback_url(self) -> str:
        """Base URL the orchestrator uses to probe this process over HTTP."""
        if self.probe_base_url:
            return self.probe_base_url.rstrip("/")
        return f"http://127.0.0.1:{self.port}"


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _apply_toml(config: MendwellConfig, data: dict[str, Any]) -> None:
    """Overlay TOML data onto a MendwellConfig."""
    server = data.get("server", {})
    if "host" in server:
        config.host = server["host"]
    if "port" in server:
        config.port = int(server["port"])
    if "environment" in server:
        config.environment = server["environment"]
    if "static_dir" in server:
        config.static_dir = Path(server["static_dir"])

    metrics = data.get("metrics", {})
    if "window" in metrics:
        config.metrics_window = int(metrics["window"])
    if "slow_request_ms" in metrics:
        config.slow_request_ms = float(metrics["slow_request_ms"])

    health = data.get("health", {})
    if "interval_seconds" in health:
        config.health_interval_seconds = float(health["interval_seconds"])

    healer = data.get("healer", {})
    if "pulse_interval_seconds" in healer:
        config.pulse_interval_seconds = float(healer["pulse_interval_seconds"])
    if "emergency_error_threshold" in healer:
        config.emergency_error_threshold = int(healer["emergency_error_threshold"])
    if "connection_listener_limit" in healer:
        config.connection_listener_limit = int(healer["connection_listener_limit"])

    repair = data.get("repair", data.get("self_repair", {}))
    if "enabled" in repair:
        config.self_repair_enabled = repair["enabled"]
    if "interval_seconds" in repair:
        config.repair_interval_seconds = float(repair["interval_seconds"])
    if "healing_cycle_seconds" in repair:
        config.healing_cycle_interval_seconds = float(repair["healing_cycle_seconds"])
    if "probe_timeout_seconds" in repair:
        config.probe_timeout_seconds = float(repair["probe_timeout_seconds"])
    if "probe_base_url" in repair:
        config.probe_base_url = repair["probe_base_url"]
    if "dev_server_url" in repair:
        config.dev_server_url = repair["dev_server_url"]
    if "dev_server_command" in repair:
        config.dev_server_command = repair["dev_server_command"]
    if "artifact_dir" in repair:
        config.artifact_dir = Path(repair["artifact_dir"])


def load_config(config_path: Path | None = None) -> MendwellConfig:
    """
    Build config from defaults → TOML file → environment variables.

    Precedence (highest wins):
        1. Environment variables
        2. ~/.mendwell/config.toml
        3. Built-in defaults
    """
    config = MendwellConfig()

    path = config_path or CONFIG_PATH
    if path.exists():
        with open(path, "rb") as f:
            toml_data = tomllib.load(f)
        _apply_toml(config, toml_data)

    # Env overrides
    if os.getenv("MENDWELL_HOST"):
        config.host = os.getenv("MENDWELL_HOST")  # type: ignore[assignment]
    if os.getenv("PORT"):
        config.port = int(os.getenv("PORT"))  # type: ignore[arg-type]
    environment = os.getenv("MENDWELL_ENV") or os.getenv("NODE_ENV")
    if environment:
        config.environment = environment
    if os.getenv("MENDWELL_DEV_SERVER_URL"):
        config.dev_server_url = os.getenv("MENDWELL_DEV_SERVER_URL")
    if os.getenv("MENDWELL_STATIC_DIR"):
        config.static_dir = Path(os.getenv("MENDWELL_STATIC_DIR"))  # type: ignore[arg-type]

    return config


# ---------------------------------------------------------------------------
# Process-wide accessor (CLI only; the app receives config explicitly)
# ---------------------------------------------------------------------------

_config: MendwellConfig | None = None


def get_config() -> MendwellConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config
