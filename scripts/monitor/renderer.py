"""
Double-buffered terminal output that only redraws changed lines.
"""

from __future__ import annotations

import sys
from typing import Sequence, TextIO

from monitor.ansi import CLEAR_LINE, CLEAR_SCREEN, move_to


class TerminalIOError(OSError):
    """Writing to or configuring the terminal failed."""


class TerminalBuffer:
    """Keeps the previously emitted frame and writes only the difference.

    The first render (and the first one after :meth:`invalidate`) clears
    the screen and draws every line. Later renders move the cursor to each
    changed row, clear it and write the new content. Rows that disappear
    because the frame got shorter are cleared. Everything for one render is
    written and flushed as a single unit.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._previous: list[str] = []
        self._first_render = True
        self.last_updates = 0

    @property
    def previous_lines(self) -> tuple[str, ...]:
        return tuple(self._previous)

    def _diff(self, lines: Sequence[str]) -> tuple[list[str], int]:
        chunks: list[str] = []
        updates = 0
        for i in range(max(len(self._previous), len(lines))):
            old = self._previous[i] if i < len(self._previous) else ""
            new = lines[i] if i < len(lines) else ""
            if old != new:
                chunks.append(f"{move_to(i + 1)}{CLEAR_LINE}{new}")
                updates += 1
        # Park the cursor below the frame
        chunks.append(move_to(len(lines) + 1))
        return chunks, updates

    def render(self, lines: Sequence[str]) -> None:
        lines = list(lines)
        if self._first_render:
            output = CLEAR_SCREEN + "".join(f"{line}\n" for line in lines)
            updates = len(lines)
        else:
            chunks, updates = self._diff(lines)
            output = "".join(chunks)

        self._write(output)

        self._previous = lines
        self._first_render = False
        self.last_updates = updates

    def invalidate(self) -> None:
        """Force a full redraw on next render."""
        self._first_render = True
        self._previous = []

    def clear(self) -> None:
        """Clear the screen and reset to the pre-first-render state."""
        self._previous = []
        self._first_render = True
        self._write(CLEAR_SCREEN)

    def write_raw(self, text: str) -> None:
        """Write control sequences that are not part of a frame."""
        self._write(text)

    def _write(self, output: str) -> None:
        try:
            self._stream.write(output)
            self._stream.flush()
        except (OSError, ValueError) as exc:
            # ValueError: write to a closed stream
            raise TerminalIOError(f"terminal write failed: {exc}") from exc
