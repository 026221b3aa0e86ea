"""
ANSI escape sequences, box drawing and small formatting helpers.
"""

from __future__ import annotations

import re
from datetime import datetime

WIDTH = 65

# Box drawing characters
BOX_H = "─"
BOX_V = "│"
BOX_TL = "┌"
BOX_TR = "┐"
BOX_BL = "└"
BOX_BR = "┘"
BOX_L = "├"
BOX_R = "┤"

ESC = "\033"
CSI = f"{ESC}["

RESET = f"{CSI}0m"
BOLD = f"{CSI}1m"
DIM = f"{CSI}2m"
RED = f"{CSI}31m"
GREEN = f"{CSI}32m"
YELLOW = f"{CSI}33m"
CYAN = f"{CSI}36m"
GRAY = f"{CSI}90m"

CLEAR_SCREEN = f"{CSI}2J{CSI}H"
CLEAR_LINE = f"{CSI}2K"
HIDE_CURSOR = f"{CSI}?25l"
SHOW_CURSOR = f"{CSI}?25h"

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]|\x1b\]8;;[^\x07]*\x07")


def move_to(row: int, col: int = 1) -> str:
    """Cursor position, 1-indexed."""
    return f"{CSI}{row};{col}H"


class Palette:
    """Colour helpers; a disabled palette returns text unchanged."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    def color(self, text: str, code: str) -> str:
        if not self.enabled:
            return text
        return f"{code}{text}{RESET}"

    def green(self, text: str) -> str:
        return self.color(text, GREEN)

    def yellow(self, text: str) -> str:
        return self.color(text, YELLOW)

    def red(self, text: str) -> str:
        return self.color(text, RED)

    def cyan(self, text: str) -> str:
        return self.color(text, CYAN)

    def gray(self, text: str) -> str:
        return self.color(text, GRAY)

    def bold(self, text: str) -> str:
        return self.color(text, BOLD)

    def hyperlink(self, text: str, url: str, code: str = CYAN) -> str:
        """OSC 8 clickable link."""
        if not self.enabled:
            return f"{text} ({url})"
        return f"{ESC}]8;;{url}\a{code}{text}{RESET}{ESC}]8;;\a"


def strip_ansi(text: str) -> str:
    """Remove escape sequences for width calculations."""
    return _ANSI_RE.sub("", text)


def pad_right(text: str, length: int) -> str:
    visible = len(strip_ansi(text))
    if visible >= length:
        return text
    return text + " " * (length - visible)


def box_top(title: str, palette: Palette, width: int = WIDTH) -> str:
    """Section top border with an embedded title."""
    title_part = f" {title} "
    remaining = max(0, width - len(title_part) - 1)
    return BOX_TL + BOX_H + palette.cyan(title_part) + BOX_H * remaining + BOX_TR


def box_middle(width: int = WIDTH) -> str:
    return BOX_L + BOX_H * width + BOX_R


def box_bottom(width: int = WIDTH) -> str:
    return BOX_BL + BOX_H * width + BOX_BR


def box_row(content: str, width: int = WIDTH) -> str:
    """Create a box line with text, padded to the box width."""
    padding = max(1, width - len(strip_ansi(content)))
    return f"{BOX_V} {content}{' ' * (padding - 1)}{BOX_V}"


def progress_bar(value: int, total: int, palette: Palette, width: int = 22) -> str:
    """Create a progress bar."""
    if total <= 0:
        return palette.gray("░" * width)
    filled = max(0, min(width, int(value / total * width)))
    return palette.green("█" * filled) + palette.gray("░" * (width - filled))


def percent(value: int, total: int) -> int:
    return int(value / total * 100) if total > 0 else 0


def format_uptime(seconds: float) -> str:
    """Format a duration as ``2h5m``, ``12m`` or ``40s``."""
    total = max(0, int(seconds))
    hours = total // 3600
    minutes = (total % 3600) // 60
    if hours > 0:
        return f"{hours}h{minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return f"{total}s"


def format_runtime(start: datetime | None, now: datetime) -> str:
    if start is None:
        return "--"
    if start.tzinfo is None and now.tzinfo is not None:
        now = now.replace(tzinfo=None)
    return format_uptime((now - start).total_seconds())


def format_clock(ts: datetime | None, fmt: str = "%H:%M:%S") -> str:
    if ts is None:
        return "--:--"
    return ts.astimezone().strftime(fmt) if ts.tzinfo else ts.strftime(fmt)
