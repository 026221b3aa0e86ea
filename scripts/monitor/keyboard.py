"""
Non-blocking single-key input from the controlling terminal.
"""

from __future__ import annotations

import fcntl
import logging
import os
import sys
import termios
from typing import Callable

logger = logging.getLogger(__name__)

KeyHandler = Callable[[str], None]

ESC = b"\x1b"


class KeyboardInput:
    """Puts the terminal in no-echo, non-canonical, non-blocking mode.

    :meth:`disable` restores exactly what :meth:`enable` captured. It is
    idempotent and never raises, so it can run first on any shutdown path.
    """

    def __init__(self, fd: int | None = None) -> None:
        self._fd = fd
        self._original_attrs: list | None = None
        self._original_flags: int | None = None
        self._handler: KeyHandler | None = None
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def original_attributes(self) -> list | None:
        return self._original_attrs

    def _resolve_fd(self) -> int:
        if self._fd is None:
            self._fd = sys.stdin.fileno()
        return self._fd

    def enable(self, on_key: KeyHandler) -> bool:
        """Switch to raw-ish mode; returns False if stdin is not a terminal."""
        if self._enabled:
            self._handler = on_key
            return True

        try:
            fd = self._resolve_fd()
            original = termios.tcgetattr(fd)
        except (termios.error, OSError, ValueError) as exc:
            logger.warning("keyboard input unavailable: %s", exc)
            return False

        raw = termios.tcgetattr(fd)
        raw[3] &= ~(termios.ICANON | termios.ECHO)
        raw[6][termios.VMIN] = 0
        raw[6][termios.VTIME] = 0

        try:
            termios.tcsetattr(fd, termios.TCSAFLUSH, raw)
            flags = fcntl.fcntl(fd, fcntl.F_GETFL)
            fcntl.fcntl(fd, fcntl.F_SETFL, flags | os.O_NONBLOCK)
        except (termios.error, OSError) as exc:
            logger.warning("could not switch terminal to raw mode: %s", exc)
            try:
                termios.tcsetattr(fd, termios.TCSAFLUSH, original)
            except termios.error as restore_exc:
                logger.error("failed to restore terminal attributes: %s", restore_exc)
            return False

        self._original_attrs = original
        self._original_flags = flags
        self._handler = on_key
        self._enabled = True
        logger.debug("keyboard raw mode enabled on fd %d", fd)
        return True

    def poll_once(self) -> None:
        """Dispatch one pending keystroke, if any. Never blocks."""
        if not self._enabled or self._handler is None:
            return
        try:
            data = os.read(self._fd, 1)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            logger.debug("keyboard read failed: %s", exc)
            return
        if not data:
            return
        if data == ESC:
            # Function and cursor keys arrive as ESC-prefixed sequences
            self._drain()
            return
        self._handler(data.decode("latin-1"))

    def _drain(self) -> None:
        """Discard whatever input is already buffered."""
        while True:
            try:
                chunk = os.read(self._fd, 64)
            except (BlockingIOError, InterruptedError):
                return
            except OSError as exc:
                logger.debug("keyboard read failed: %s", exc)
                return
            if not chunk:
                return

    def disable(self) -> None:
        """Restore the original terminal state."""
        if not self._enabled:
            return
        self._enabled = False
        self._handler = None
        fd = self._fd

        try:
            termios.tcsetattr(fd, termios.TCSAFLUSH, self._original_attrs)
        except (termios.error, OSError) as exc:
            logger.error("failed to restore terminal attributes: %s", exc)
        try:
            fcntl.fcntl(fd, fcntl.F_SETFL, self._original_flags)
        except OSError as exc:
            logger.error("failed to restore terminal flags: %s", exc)
        logger.debug("keyboard raw mode disabled")

    def __del__(self) -> None:
        self.disable()
