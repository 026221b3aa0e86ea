"""
The cooperative run loop.

One control flow polls the keyboard every tick and, when the refresh
interval has elapsed or a refresh was requested, fetches all sources,
updates the poll statistics, builds a frame and renders it. SIGINT only
requests a stop so the cleanup sequence always runs.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from enum import Enum
from typing import Awaitable, Callable

from monitor.ansi import HIDE_CURSOR, SHOW_CURSOR, Palette
from monitor.commands import CommandTable
from monitor.config import MonitorConfig
from monitor.fetcher import DataFetcher
from monitor.frame import FrameBuilder, default_frame_builder
from monitor.keyboard import KeyboardInput
from monitor.launcher import ComponentLauncher
from monitor.providers import PollStats, Snapshot, StatusMessage
from monitor.renderer import TerminalBuffer, TerminalIOError

logger = logging.getLogger(__name__)

# Keyboard poll cadence in seconds
TICK_INTERVAL = 0.1


class LoopState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Dashboard:
    """Owns the poll statistics, the status message and the lifecycle."""

    def __init__(
        self,
        config: MonitorConfig,
        fetcher: DataFetcher,
        renderer: TerminalBuffer | None = None,
        keyboard: KeyboardInput | None = None,
        frame_builder: FrameBuilder | None = None,
        launcher: ComponentLauncher | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        tick_interval: float = TICK_INTERVAL,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.renderer = renderer or TerminalBuffer()
        self.keyboard = keyboard or KeyboardInput()
        self.frame_builder = frame_builder or default_frame_builder(config)
        self.status = StatusMessage(clock)
        self.commands = CommandTable(
            self.status,
            request_refresh=self.request_refresh,
            request_stop=self.request_stop,
            launcher=launcher,
            web_url=config.web_frontend_url,
        )
        self.stats = PollStats()
        self.snapshot: Snapshot | None = None
        self.state = LoopState.STARTING
        self.cycles = 0

        self._clock = clock
        self._sleep = sleep
        self._tick_interval = tick_interval
        self._force_refresh = False
        self._last_refresh = float("-inf")
        self._signal_loop: asyncio.AbstractEventLoop | None = None

    def request_stop(self) -> None:
        if self.state in (LoopState.STARTING, LoopState.RUNNING):
            logger.info("stop requested")
            self.state = LoopState.STOPPING

    def request_refresh(self) -> None:
        self._force_refresh = True

    def handle_key(self, key: str) -> None:
        self.commands.dispatch(key)

    async def run(self) -> None:
        self._start()
        try:
            while self.state is LoopState.RUNNING:
                await self._tick()
        finally:
            self.state = LoopState.STOPPING
            self._remove_signal_handler()
            await self._cleanup()
            self.state = LoopState.STOPPED

    def _start(self) -> None:
        self._install_signal_handler()
        self.keyboard.enable(self.handle_key)
        try:
            self.renderer.write_raw(HIDE_CURSOR)
        except TerminalIOError as exc:
            logger.warning("could not hide cursor: %s", exc)
        self._last_refresh = float("-inf")
        if self.state is LoopState.STARTING:
            self.state = LoopState.RUNNING
        logger.info("monitor started, refresh every %ss", self.config.refresh_interval)

    async def _tick(self) -> None:
        tick_start = self._clock()
        self.keyboard.poll_once()
        if self.state is not LoopState.RUNNING:
            return

        if self._force_refresh or tick_start - self._last_refresh >= self.config.refresh_interval:
            self._force_refresh = False
            await self.refresh_once()
            self._last_refresh = tick_start

        remaining = self._tick_interval - (self._clock() - tick_start)
        await self._sleep(max(0.0, remaining))

    async def refresh_once(self) -> list[str]:
        """Fetch, update stats, build and render one frame."""
        snapshot, stats = await self.fetcher.fetch_all(self.stats)
        # Stats and snapshot from the same cycle are committed together
        self.snapshot, self.stats = snapshot, stats
        self.cycles += 1

        frame = self.frame_builder.build(snapshot, stats, self.status.current())
        try:
            self.renderer.render(frame)
        except TerminalIOError as exc:
            logger.warning("skipping frame: %s", exc)
            self.renderer.invalidate()
        return frame

    def _install_signal_handler(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self.request_stop)
        except (NotImplementedError, RuntimeError, ValueError) as exc:
            # Not the main thread, or a platform without loop signal support
            logger.debug("SIGINT handler not installed: %s", exc)
            return
        self._signal_loop = loop

    def _remove_signal_handler(self) -> None:
        if self._signal_loop is None:
            return
        try:
            self._signal_loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError, ValueError) as exc:
            logger.debug("SIGINT handler not removed: %s", exc)
        self._signal_loop = None

    async def _cleanup(self) -> None:
        # Terminal mode first; nothing below may prevent it.
        self.keyboard.disable()

        try:
            self.renderer.write_raw(SHOW_CURSOR)
            self.renderer.clear()
            self.renderer.write_raw(Palette().cyan("Monitor stopped.") + "\n")
        except TerminalIOError as exc:
            logger.warning("terminal cleanup failed: %s", exc)

        try:
            await self.fetcher.aclose()
        except Exception as exc:
            logger.warning("error closing HTTP client: %s", exc)
        logger.info("monitor stopped after %d cycles", self.cycles)
