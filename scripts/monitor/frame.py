"""
Frame building.

A frame is the full dashboard as a list of text lines. Each section
contributes its own lines from the current snapshot, stats and status
message; adding a monitored source means adding one section.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol, Sequence

from monitor.ansi import (
    WIDTH,
    Palette,
    box_bottom,
    box_middle,
    box_row,
    box_top,
    format_clock,
    format_runtime,
    format_uptime,
    pad_right,
    percent,
    progress_bar,
)
from monitor.config import MonitorConfig
from monitor.providers import DaemonStats, PollStats, ServerHealth, Snapshot, ValidationStats
from monitor.sources import DAEMON, HEALTH, VALIDATION

KEY_HINTS = "[R:Refresh] [W:Web] [S:Start] [Q:Quit]"


class Section(Protocol):
    def produce_lines(
        self, snapshot: Snapshot, stats: PollStats, status: str | None
    ) -> list[str]:
        ...


class HeaderSection:
    """Title bar, key hints and the transient status message."""

    def __init__(self, title: str, palette: Palette) -> None:
        self.title = title
        self.p = palette

    def produce_lines(self, snapshot: Snapshot, stats: PollStats, status: str | None) -> list[str]:
        title_part = f"═══ {self.title} ═══"
        spacing = max(1, WIDTH - len(title_part) - len(KEY_HINTS) + 2)
        lines = [self.p.cyan(title_part) + " " * spacing + self.p.gray(KEY_HINTS)]
        # Keep the frame height stable so the status line does not shift rows
        lines.append(self.p.yellow(status) if status else "")
        return lines


class ServerSection:
    """Server health plus the monitor's own poll statistics."""

    def __init__(self, config: MonitorConfig, palette: Palette, name: str = HEALTH) -> None:
        self.config = config
        self.p = palette
        self.name = name

    def produce_lines(self, snapshot: Snapshot, stats: PollStats, status: str | None) -> list[str]:
        p = self.p
        result = snapshot.get(self.name)
        health: ServerHealth | None = result.payload
        online = health is not None and health.is_online

        lines = [box_top("SERVER (trivia-ill)", p)]
        dot = p.green("●") if online else p.red("●")
        state = p.green("ONLINE") if online else p.red("OFFLINE")
        lines.append(box_row(f"Status: {dot} {state}        URL: {self.config.server_host}"))

        if result.failure is not None:
            lines.append(box_row(p.red(f"Error: {result.failure.short(50)}")))
        elif health is not None and not online:
            lines.append(box_row(p.yellow(f"Reported: {health.status[:50]}")))
        elif health is not None and health.uptime is not None:
            version = f"    Version: {health.version}" if health.version else ""
            lines.append(box_row(f"Server uptime: {format_uptime(health.uptime)}{version}"))

        lines.append(box_middle())
        lines.append(
            box_row(
                f"Polls: {p.cyan(str(stats.poll_count))}  "
                f"Latency: {p.cyan(f'{stats.last_latency_ms:.0f}ms')}  "
                f"Avg: {p.cyan(f'{stats.avg_latency_ms:.0f}ms')}  "
                f"Up: {p.cyan(format_uptime(stats.uptime()))}  "
                f"OK: {p.green(f'{stats.success_rate:.0f}%')}"
            )
        )
        lines.append(box_bottom())
        return lines


class ValidationSection:
    """Validation queue counters and the busiest workers."""

    MAX_WORKERS = 4
    AUTH_HINT = "Set TRIVIA_MONITOR_API_KEY or pass -k <key>"

    def __init__(
        self, palette: Palette, name: str = VALIDATION, server_name: str = HEALTH, has_api_key: bool = True
    ) -> None:
        self.p = palette
        self.has_api_key = has_api_key
        self.name = name
        self.server_name = server_name

    def produce_lines(self, snapshot: Snapshot, stats: PollStats, status: str | None) -> list[str]:
        p = self.p
        result = snapshot.get(self.name)
        lines = [box_top("VALIDATION", p)]

        vs: ValidationStats | None = result.payload
        if vs is None:
            lines.append(box_row(p.gray("Waiting for data...")))
            server = snapshot.payload(self.server_name) if self.server_name in snapshot.names else None
            # Only worth explaining when the server itself is reachable
            if server is not None and server.is_online:
                lines.append(box_row(p.yellow(f"Error: {result.failure.short(48)}")))
                if result.failure.status_code in (401, 403) and not self.has_api_key:
                    lines.append(box_row(p.gray(self.AUTH_HINT)))
            lines.append(box_bottom())
            return lines

        lines.append(
            box_row(
                f"Queue: {p.cyan(str(vs.queue_size))}    "
                f"Processing: {p.cyan(str(vs.processing))}    "
                f"Pending: {p.yellow(str(vs.pending))}    "
                f"Approved: {p.green(str(vs.approved))}"
            )
        )
        lines.append(box_row(f"Flagged: {p.yellow(str(vs.flagged))}  Rejected: {p.red(str(vs.rejected))}"))

        if vs.worker_stats:
            lines.append(box_middle())
            total = sum(vs.worker_stats.values())
            workers = sorted(vs.worker_stats.items(), key=lambda kv: (-kv[1], kv[0]))
            for name, count in workers[: self.MAX_WORKERS]:
                bar = progress_bar(count, total, p)
                lines.append(
                    box_row(f"{pad_right(name + ':', 18)} {count:4d} {bar} {percent(count, total):3d}%")
                )

        lines.append(box_bottom())
        return lines


class DaemonSection:
    """Generator daemon state from its stats file."""

    STATE_COLORS = {"running": "green", "paused": "yellow", "stopped": "red", "error": "red"}

    def __init__(self, palette: Palette, name: str = DAEMON) -> None:
        self.p = palette
        self.name = name

    def _state_text(self, state: str) -> tuple[str, str]:
        color = self.STATE_COLORS.get(state.lower(), "gray")
        paint = getattr(self.p, color)
        return paint("●"), paint(state.upper())

    def produce_lines(self, snapshot: Snapshot, stats: PollStats, status: str | None) -> list[str]:
        p = self.p
        result = snapshot.get(self.name)
        lines = [box_top("GEN DAEMON", p)]

        daemon: DaemonStats | None = result.payload
        if daemon is None:
            lines.append(box_row(p.gray("Daemon not running or stats file not found")))
            lines.append(box_row(p.yellow(result.failure.short(55))))
            lines.append(box_bottom())
            return lines

        now = datetime.now(timezone.utc)
        dot, state = self._state_text(daemon.state)
        started = format_clock(daemon.start_time, "%H:%M")
        runtime = format_runtime(daemon.start_time, now)
        lines.append(box_row(f"Status: {dot} {state}       Started: {started}        Runtime: {runtime}"))
        lines.append(box_middle())

        total = daemon.total_fetched
        rate = daemon.questions_added / total * 100 if total > 0 else 0.0
        errors = p.red(str(daemon.errors)) if daemon.errors > 0 else "0"
        lines.append(
            box_row(
                f"Total Fetched: {p.cyan(str(total))}    "
                f"Success Rate: {p.green(f'{rate:.1f}%')}    "
                f"Errors: {errors}"
            )
        )
        lines.append(box_middle())

        for label, value in (("Added:", daemon.questions_added), ("Duplicates:", daemon.duplicates_skipped)):
            bar = progress_bar(value, total, p, width=20)
            lines.append(box_row(f"{pad_right(label, 12)}{value:6d} {bar} {percent(value, total):3d}%"))

        if daemon.providers:
            lines.append(box_middle())
            lines.append(box_row(p.cyan("Providers:")))
            for provider in daemon.providers:
                dot = p.green("●") if provider.enabled else p.gray("○")
                state = p.green("active") if provider.enabled else p.gray("off")
                added = f"  ({provider.questions_added} added)" if provider.questions_added is not None else ""
                lines.append(box_row(f"  {dot} {pad_right(provider.name, 14)} {state}{added}"))

        lines.append(box_bottom())
        return lines


class FooterSection:
    def __init__(self, config: MonitorConfig, palette: Palette) -> None:
        self.config = config
        self.p = palette

    def produce_lines(self, snapshot: Snapshot, stats: PollStats, status: str | None) -> list[str]:
        p = self.p
        link = p.hyperlink("Open Web App", self.config.web_frontend_url)
        last = format_clock(snapshot.taken_at)
        return [
            p.gray(f"─── Refresh: {self.config.refresh_interval}s │ Last: {last} │ [W] ")
            + link
            + p.gray(" ─────────────")
        ]


class Spacer:
    def produce_lines(self, snapshot: Snapshot, stats: PollStats, status: str | None) -> list[str]:
        return [""]


class FrameBuilder:
    """Concatenates section output into one frame."""

    def __init__(self, sections: Sequence[Section]) -> None:
        self.sections = list(sections)

    def build(self, snapshot: Snapshot, stats: PollStats, status: str | None = None) -> list[str]:
        lines: list[str] = []
        for section in self.sections:
            lines.extend(section.produce_lines(snapshot, stats, status))
        return lines


def default_frame_builder(config: MonitorConfig, use_color: bool = True) -> FrameBuilder:
    palette = Palette(enabled=use_color)
    return FrameBuilder(
        [
            HeaderSection("TRIVIA MONITOR", palette),
            ServerSection(config, palette),
            Spacer(),
            ValidationSection(palette, has_api_key=bool(config.api_key)),
            Spacer(),
            DaemonSection(palette),
            Spacer(),
            FooterSection(config, palette),
        ]
    )
