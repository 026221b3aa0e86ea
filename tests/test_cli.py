"""Tests for configuration and the command-line entry point."""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "scripts"))

import trivia_monitor  # noqa: E402
from monitor.config import ConfigError, MonitorConfig, env_defaults  # noqa: E402
from monitor.providers import Failure, FailureKind, ServerHealth, SourceResult  # noqa: E402


class StubSource:
    def __init__(self, name: str, payload=None, failure=None) -> None:
        self.name = name
        self.payload = payload
        self.failure = failure

    async def poll(self, client):
        return SourceResult(self.name, payload=self.payload, failure=self.failure)


def stub_sources(health_ok: bool):
    def build(config):
        if health_ok:
            health = StubSource("health", payload=ServerHealth("ok", uptime=60, version="1.2.0"))
        else:
            health = StubSource("health", failure=Failure(FailureKind.NETWORK_REFUSED, "Connection refused"))
        return [
            health,
            StubSource("validation", failure=Failure(FailureKind.HTTP_STATUS, "HTTP 401", status_code=401)),
            StubSource("daemon", failure=Failure(FailureKind.FILE_NOT_FOUND, "Not found")),
        ]

    return build


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for suffix in ("SERVER", "API_KEY", "REFRESH", "DAEMON_STATS", "TRIVIA_PATH", "WEB_URL"):
        monkeypatch.delenv(f"TRIVIA_MONITOR_{suffix}", raising=False)
    # Keep a stray .env in the working directory out of the tests
    monkeypatch.setattr(trivia_monitor, "load_dotenv", lambda: False)


class TestMonitorConfig:
    """Tests for MonitorConfig."""

    def test_defaults(self) -> None:
        config = MonitorConfig()

        assert config.health_url == "http://localhost:8080/health"
        assert config.validation_stats_url == "http://localhost:8080/api/v1/admin/validate/stats"
        assert config.refresh_interval == 3
        assert config.auth_headers == {}

    def test_trailing_slash_is_stripped(self) -> None:
        config = MonitorConfig(server_url="https://trivia.example.com/")

        assert config.health_url == "https://trivia.example.com/health"
        assert config.server_host == "trivia.example.com"

    def test_api_key_header(self) -> None:
        assert MonitorConfig(api_key="secret").auth_headers == {"X-Admin-API-Key": "secret"}

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"refresh_interval": 0},
            {"server_url": "localhost:8080"},
            {"timeout": 0},
        ],
    )
    def test_invalid_values(self, kwargs: dict) -> None:
        with pytest.raises(ConfigError):
            MonitorConfig(**kwargs)

    def test_paths_expand_user(self) -> None:
        config = MonitorConfig(trivia_base_path="~/trivial")

        assert not str(config.trivia_base_dir).startswith("~")


class TestEnvDefaults:
    """Tests for environment overrides."""

    def test_reads_prefixed_variables(self) -> None:
        values = env_defaults(
            {
                "TRIVIA_MONITOR_SERVER": "http://remote:9000",
                "TRIVIA_MONITOR_REFRESH": "10",
                "TRIVIA_MONITOR_API_KEY": "",
                "UNRELATED": "x",
            }
        )

        assert values == {"server_url": "http://remote:9000", "refresh_interval": 10}

    def test_bad_refresh(self) -> None:
        with pytest.raises(ConfigError):
            env_defaults({"TRIVIA_MONITOR_REFRESH": "soon"})


class TestConfigFromArgs:
    """Tests for flag and environment precedence."""

    def test_flags_override_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRIVIA_MONITOR_SERVER", "http://env:1")
        monkeypatch.setenv("TRIVIA_MONITOR_REFRESH", "7")
        args = trivia_monitor.build_parser().parse_args(["-s", "http://flag:2"])

        config = trivia_monitor.config_from_args(args)

        assert config.server_url == "http://flag:2"
        assert config.refresh_interval == 7

    def test_invalid_flag_exits(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc:
            trivia_monitor.main(["--json", "-r", "0"])

        assert exc.value.code == 2
        assert "refresh interval" in capsys.readouterr().err


class TestOneShotModes:
    """Tests for --json and --once."""

    def test_json_output(self, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        monkeypatch.setattr(trivia_monitor, "build_sources", stub_sources(health_ok=True))

        code = trivia_monitor.main(["--json"])

        data = json.loads(capsys.readouterr().out)
        assert code == 0
        assert set(data["sources"]) == {"health", "validation", "daemon"}
        assert data["sources"]["health"]["payload"]["version"] == "1.2.0"
        assert data["sources"]["validation"]["error"] == {
            "kind": "HTTP_STATUS",
            "message": "HTTP 401",
            "status_code": 401,
        }
        assert data["stats"]["poll_count"] == 1
        assert data["stats"]["success_count"] == 1

    def test_json_exit_code_when_server_down(self, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        monkeypatch.setattr(trivia_monitor, "build_sources", stub_sources(health_ok=False))

        code = trivia_monitor.main(["--json"])

        data = json.loads(capsys.readouterr().out)
        assert code == 1
        assert data["sources"]["health"]["error"]["kind"] == "NETWORK_REFUSED"
        assert data["stats"]["failure_count"] == 1

    def test_once_prints_plain_frame(self, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        monkeypatch.setattr(trivia_monitor, "build_sources", stub_sources(health_ok=True))

        code = trivia_monitor.main(["--once", "--no-color"])

        out = capsys.readouterr().out
        assert code == 0
        assert "TRIVIA MONITOR" in out
        assert "ONLINE" in out
        assert "\x1b[" not in out

    def test_live_mode_requires_terminal(self, capsys) -> None:
        # capsys replaces stdout with a non-tty
        code = trivia_monitor.main([])

        assert code == 2
        assert "requires a terminal" in capsys.readouterr().err
