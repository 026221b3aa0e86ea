"""
Textual front-end for the monitor.

Shows the same frame as the raw terminal dashboard inside a Textual
screen, refreshed on a timer. Keys go through the same CommandTable, so
both front-ends share bindings and status messages.
"""

from __future__ import annotations

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header, Static

from monitor.commands import CommandTable
from monitor.config import MonitorConfig
from monitor.fetcher import DataFetcher
from monitor.frame import FrameBuilder, default_frame_builder
from monitor.launcher import ComponentLauncher
from monitor.providers import PollStats, Snapshot, StatusMessage


class MonitorApp(App):
    """Textual application wrapping the fetcher and frame builder."""

    TITLE = "Trivia Monitor"
    SUB_TITLE = "Service Monitor"

    CSS = """
    #frame {
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("q", "command('q')", "Quit"),
        Binding("r", "command('r')", "Refresh"),
        Binding("s", "command('s')", "Start"),
        Binding("w", "command('w')", "Web"),
    ]

    def __init__(
        self,
        config: MonitorConfig,
        fetcher: DataFetcher,
        frame_builder: FrameBuilder | None = None,
        launcher: ComponentLauncher | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._config = config
        self._fetcher = fetcher
        self._frame_builder = frame_builder or default_frame_builder(config)
        self._fetching = False
        self.status_message = StatusMessage()
        self.key_commands = CommandTable(
            self.status_message,
            request_refresh=self._request_refresh,
            request_stop=self.exit,
            launcher=launcher,
            web_url=config.web_frontend_url,
        )
        self.stats = PollStats()
        self.snapshot: Snapshot | None = None
        self.cycles = 0

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static("Loading...", id="frame")
        yield Footer()

    async def on_mount(self) -> None:
        await self.refresh_frame()
        self.set_interval(self._config.refresh_interval, self.refresh_frame)

    async def on_unmount(self) -> None:
        await self._fetcher.aclose()

    def _request_refresh(self) -> None:
        self.call_later(self.refresh_frame)

    async def refresh_frame(self) -> None:
        """Fetch all sources and redraw."""
        if self._fetching:
            return
        self._fetching = True
        try:
            snapshot, stats = await self._fetcher.fetch_all(self.stats)
            self.snapshot, self.stats = snapshot, stats
            self.cycles += 1
            self._show_frame()
        finally:
            self._fetching = False

    def _show_frame(self) -> None:
        if self.snapshot is None:
            return
        frame = self._frame_builder.build(self.snapshot, self.stats, self.status_message.current())
        self.query_one("#frame", Static).update(Text.from_ansi("\n".join(frame)))

    def action_command(self, key: str) -> None:
        if self.key_commands.dispatch(key):
            # Show the status message without waiting for the next poll
            self._show_frame()
