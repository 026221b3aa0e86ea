"""Tests for key bindings and the component launcher."""

import os
import subprocess
import sys
import time
import webbrowser
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "scripts"))

from monitor.commands import CommandTable, open_in_gui_browser  # noqa: E402
from monitor.launcher import (  # noqa: E402
    Component,
    ComponentLauncher,
    LaunchResult,
    is_file_fresh,
)
from monitor.providers import StatusMessage  # noqa: E402


@pytest.fixture
def status() -> StatusMessage:
    return StatusMessage(clock=lambda: 0.0)


class TestCommandTable:
    """Tests for CommandTable dispatch."""

    def test_refresh(self, status: StatusMessage) -> None:
        refresh, stop = MagicMock(), MagicMock()
        table = CommandTable(status, refresh, stop)

        assert table.dispatch("r")

        refresh.assert_called_once()
        stop.assert_not_called()
        assert status.current() == "Refreshing..."

    def test_quit_is_case_insensitive(self, status: StatusMessage) -> None:
        stop = MagicMock()
        table = CommandTable(status, MagicMock(), stop)

        table.dispatch("Q")

        stop.assert_called_once()

    def test_unknown_key(self, status: StatusMessage) -> None:
        refresh, stop = MagicMock(), MagicMock()
        table = CommandTable(status, refresh, stop)

        assert not table.dispatch("z")
        refresh.assert_not_called()
        stop.assert_not_called()

    def test_optional_bindings(self, status: StatusMessage) -> None:
        bare = CommandTable(status, MagicMock(), MagicMock())
        full = CommandTable(
            status, MagicMock(), MagicMock(), launcher=MagicMock(), web_url="http://localhost:3000"
        )

        assert bare.keys == ("q", "r")
        assert full.keys == ("q", "r", "s", "w")

    def test_start_components_reports_summary(self, status: StatusMessage) -> None:
        launcher = MagicMock()
        launcher.start_all.return_value = LaunchResult(started=1, already_running=1)
        refresh = MagicMock()
        table = CommandTable(status, refresh, MagicMock(), launcher=launcher)

        table.dispatch("S")

        assert status.current() == "Started 1 component(s), 1 already running"
        refresh.assert_called_once()

    def test_open_web(self, status: StatusMessage) -> None:
        opened = []
        table = CommandTable(
            status,
            MagicMock(),
            MagicMock(),
            web_url="http://localhost:3000",
            open_url=lambda url: opened.append(url) or True,
        )

        table.dispatch("w")

        assert opened == ["http://localhost:3000"]
        assert status.current() == "Opened http://localhost:3000"

    def test_open_web_failure(self, status: StatusMessage) -> None:
        table = CommandTable(
            status, MagicMock(), MagicMock(), web_url="http://localhost:3000", open_url=lambda url: False
        )

        table.dispatch("w")

        assert status.current().startswith("Could not open")


class TestOpenInGuiBrowser:
    """Tests for choosing a browser that does not need the terminal."""

    def test_console_browser_is_refused(self, monkeypatch: pytest.MonkeyPatch) -> None:
        lynx = MagicMock(spec=webbrowser.GenericBrowser)
        monkeypatch.setattr(webbrowser, "get", lambda: lynx)

        assert not open_in_gui_browser("http://localhost:3000")
        lynx.open.assert_not_called()

    def test_background_browser_is_used(self, monkeypatch: pytest.MonkeyPatch) -> None:
        xdg = MagicMock(spec=webbrowser.BackgroundBrowser)
        xdg.open.return_value = True
        monkeypatch.setattr(webbrowser, "get", lambda: xdg)

        assert open_in_gui_browser("http://localhost:3000")
        xdg.open.assert_called_once_with("http://localhost:3000")

    def test_no_browser(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def missing():
            raise webbrowser.Error("could not locate runnable browser")

        monkeypatch.setattr(webbrowser, "get", missing)

        assert not open_in_gui_browser("http://localhost:3000")

    def test_default_opener_refuses_console_browser(
        self, status: StatusMessage, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(webbrowser, "get", lambda: MagicMock(spec=webbrowser.GenericBrowser))
        table = CommandTable(status, MagicMock(), MagicMock(), web_url="http://localhost:3000")

        table.dispatch("w")

        assert status.current() == "Could not open http://localhost:3000"


class TestLaunchResult:
    """Tests for LaunchResult.summary wording."""

    @pytest.mark.parametrize(
        "result, expected",
        [
            (LaunchResult(started=2), "Started 2 component(s)"),
            (LaunchResult(started=1, already_running=1), "Started 1 component(s), 1 already running"),
            (LaunchResult(already_running=2), "All 2 component(s) already running"),
            (LaunchResult(started=1, failed=1), "Started 1, failed 1"),
            (LaunchResult(), "No components to start"),
        ],
    )
    def test_summary(self, result: LaunchResult, expected: str) -> None:
        assert result.summary() == expected


class TestComponentLauncher:
    """Tests for ComponentLauncher."""

    def test_components_under_base_path(self, tmp_path: Path) -> None:
        launcher = ComponentLauncher(tmp_path)

        names = [c.name for c in launcher.components]
        assert names == ["trivia-ill", "trivia-gen-daemon"]
        assert launcher.components[0].directory == tmp_path / "trivia-ill"
        assert launcher.components[0].check_port == 8080

    def test_file_freshness(self, tmp_path: Path) -> None:
        stats = tmp_path / "stats.json"
        assert not is_file_fresh(stats)

        stats.write_text("{}")
        assert is_file_fresh(stats)

        old = time.time() - 600
        os.utime(stats, (old, old))
        assert not is_file_fresh(stats)

    def test_start_all_counts(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        launcher = ComponentLauncher(tmp_path, log_dir=tmp_path)
        monkeypatch.setattr(launcher, "is_running", lambda c: c.name == "trivia-ill")
        monkeypatch.setattr(launcher, "start_component", lambda c: False)

        result = launcher.start_all()

        assert result == LaunchResult(started=0, already_running=1, failed=1)

    def test_start_component_spawns_process(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = {}
        process = MagicMock(pid=4321)
        process.poll.return_value = None

        def fake_popen(args, **kwargs):
            calls["args"] = args
            calls["cwd"] = kwargs["cwd"]
            return process

        monkeypatch.setattr(subprocess, "Popen", fake_popen)
        launcher = ComponentLauncher(tmp_path, log_dir=tmp_path)
        component = Component("svc", tmp_path, "swift", ("run", "App"))

        assert launcher.start_component(component)
        assert calls["args"] == ["/usr/bin/env", "swift", "run", "App"]
        assert calls["cwd"] == tmp_path
        assert (tmp_path / "svc.log").exists()

        launcher.cleanup()
        process.terminate.assert_called_once()

    def test_start_component_failure(self, tmp_path: Path) -> None:
        launcher = ComponentLauncher(tmp_path, log_dir=tmp_path)
        component = Component("svc", tmp_path / "does-not-exist", "true", ())

        assert not launcher.start_component(component)
