"""Tests for config loading — defaults, TOML overlay, env overrides."""

from pathlib import Path

import pytest

from mendwell.config import MendwellConfig, load_config

ENV_VARS = ("MENDWELL_HOST", "PORT", "MENDWELL_ENV", "NODE_ENV", "MENDWELL_DEV_SERVER_URL", "MENDWELL_STATIC_DIR")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.toml")
        assert config.port == 5000
        assert config.metrics_window == 1000
        assert config.slow_request_ms == 2000.0
        assert config.emergency_error_threshold == 10
        assert config.self_repair_enabled is True
        assert not config.is_production

    def test_loopback_url(self):
        assert MendwellConfig(port=8123).loopback_url == "http://127.0.0.1:8123"
        assert MendwellConfig(probe_base_url="http://svc:80/").loopback_url == "http://svc:80"

    @pytest.mark.parametrize("env", ["production", "prod", "PRODUCTION"])
    def test_production_names(self, env):
        assert MendwellConfig(environment=env).is_production


class TestToml:
    def test_sections_applied(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[server]\nport = 7000\nenvironment = "production"\n'
            '[metrics]\nwindow = 50\nslow_request_ms = 500\n'
            '[healer]\nemergency_error_threshold = 3\n'
            '[repair]\nenabled = false\ndev_server_url = "http://localhost:5173"\n'
            f'artifact_dir = "{tmp_path.as_posix()}/out"\n'
        )

        config = load_config(path)

        assert config.port == 7000
        assert config.is_production
        assert config.metrics_window == 50
        assert config.slow_request_ms == 500.0
        assert config.emergency_error_threshold == 3
        assert config.self_repair_enabled is False
        assert config.dev_server_url == "http://localhost:5173"
        assert config.artifact_dir == Path(f"{tmp_path.as_posix()}/out")

    def test_self_repair_alias(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[self_repair]\ninterval_seconds = 9\n")
        assert load_config(path).repair_interval_seconds == 9.0


class TestEnvOverrides:
    def test_env_beats_toml(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text("[server]\nport = 7000\n")
        monkeypatch.setenv("PORT", "7100")
        monkeypatch.setenv("MENDWELL_ENV", "prod")
        monkeypatch.setenv("MENDWELL_STATIC_DIR", str(tmp_path))

        config = load_config(path)

        assert config.port == 7100
        assert config.is_production
        assert config.static_dir == tmp_path

    def test_node_env_accepted(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NODE_ENV", "production")
        assert load_config(tmp_path / "missing.toml").is_production

    def test_mendwell_env_beats_node_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NODE_ENV", "production")
        monkeypatch.setenv("MENDWELL_ENV", "development")
        assert not load_config(tmp_path / "missing.toml").is_production
