"""
Starts the services the monitor watches.
"""

from __future__ import annotations

import logging
import socket
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from monitor.config import DEFAULT_DAEMON_STATS_PATH

logger = logging.getLogger(__name__)

# A stats file older than this means the daemon is not running
DAEMON_STALE_SECONDS = 120


@dataclass(frozen=True)
class Component:
    name: str
    directory: Path
    command: str
    args: tuple[str, ...]
    check_port: int | None = None
    check_file: Path | None = None


@dataclass(frozen=True)
class LaunchResult:
    started: int = 0
    already_running: int = 0
    failed: int = 0

    def summary(self) -> str:
        if self.started > 0 and self.failed == 0:
            message = f"Started {self.started} component(s)"
            if self.already_running > 0:
                message += f", {self.already_running} already running"
            return message
        if self.already_running > 0 and self.started == 0 and self.failed == 0:
            return f"All {self.already_running} component(s) already running"
        if self.failed > 0:
            return f"Started {self.started}, failed {self.failed}"
        return "No components to start"


def is_port_listening(port: int, host: str = "127.0.0.1", timeout: float = 0.3) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def is_file_fresh(path: Path, max_age: float = DAEMON_STALE_SECONDS) -> bool:
    try:
        mtime = path.stat().st_mtime
    except OSError:
        return False
    return time.time() - mtime < max_age


class ComponentLauncher:
    """Checks and launches the trivia server and generator daemon."""

    def __init__(self, base_path: Path, daemon_stats_path: Path | None = None, log_dir: Path = Path("/tmp")) -> None:
        self.base_path = Path(base_path).expanduser()
        self.daemon_stats_path = Path(daemon_stats_path or DEFAULT_DAEMON_STATS_PATH)
        self.log_dir = log_dir
        self._launched: dict[str, subprocess.Popen] = {}

    @property
    def components(self) -> list[Component]:
        return [
            Component(
                name="trivia-ill",
                directory=self.base_path / "trivia-ill",
                command="swift",
                args=("run", "App", "serve"),
                check_port=8080,
            ),
            Component(
                name="trivia-gen-daemon",
                directory=self.base_path / "trivia-gen-daemon",
                command="swift",
                args=("run", "TriviaGen"),
                check_file=self.daemon_stats_path,
            ),
        ]

    def is_running(self, component: Component) -> bool:
        if component.check_port is not None:
            return is_port_listening(component.check_port)
        if component.check_file is not None:
            return is_file_fresh(component.check_file)
        return False

    def start_component(self, component: Component) -> bool:
        log_path = self.log_dir / f"{component.name}.log"
        try:
            log = open(log_path, "ab")
        except OSError:
            log = subprocess.DEVNULL
        try:
            process = subprocess.Popen(
                ["/usr/bin/env", component.command, *component.args],
                cwd=component.directory,
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=log,
                start_new_session=True,
            )
        except OSError as exc:
            logger.warning("failed to start %s: %s", component.name, exc)
            return False
        finally:
            if log is not subprocess.DEVNULL:
                log.close()
        self._launched[component.name] = process
        logger.info("started %s (pid %d)", component.name, process.pid)
        return True

    def start_all(self) -> LaunchResult:
        started = already_running = failed = 0
        for component in self.components:
            if self.is_running(component):
                already_running += 1
            elif self.start_component(component):
                started += 1
            else:
                failed += 1
        return LaunchResult(started, already_running, failed)

    def cleanup(self) -> None:
        """Terminate processes this launcher started."""
        for name, process in self._launched.items():
            if process.poll() is None:
                logger.info("terminating %s", name)
                process.terminate()
        self._launched.clear()
