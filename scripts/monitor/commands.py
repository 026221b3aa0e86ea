"""
Single-key command dispatch.
"""

from __future__ import annotations

import logging
import webbrowser
from typing import Callable

from monitor.launcher import ComponentLauncher
from monitor.providers import StatusMessage

logger = logging.getLogger(__name__)

STATUS_DURATION = 5.0


def open_in_gui_browser(url: str) -> bool:
    """Open ``url`` unless the only browser found runs in this terminal.

    Console browsers (lynx, w3m, ...) are registered as plain
    :class:`webbrowser.GenericBrowser` and would take over a terminal that
    is still in raw, non-blocking mode.
    """
    try:
        browser = webbrowser.get()
    except webbrowser.Error as exc:
        logger.warning("no browser available: %s", exc)
        return False
    if isinstance(browser, webbrowser.GenericBrowser) and not isinstance(browser, webbrowser.BackgroundBrowser):
        logger.warning("not opening console browser %s", getattr(browser, "name", browser))
        return False
    return browser.open(url)


class CommandTable:
    """Maps keys (case-insensitive) to actions.

    ``request_refresh`` and ``request_stop`` are supplied by the run loop;
    the launcher and browser opener are the side-effecting collaborators.
    """

    def __init__(
        self,
        status: StatusMessage,
        request_refresh: Callable[[], None],
        request_stop: Callable[[], None],
        launcher: ComponentLauncher | None = None,
        web_url: str | None = None,
        open_url: Callable[[str], bool] | None = None,
    ) -> None:
        self.status = status
        self._request_refresh = request_refresh
        self._request_stop = request_stop
        self._launcher = launcher
        self._web_url = web_url
        self._open_url = open_url
        self._actions: dict[str, Callable[[], None]] = {
            "r": self.refresh,
            "q": self.quit,
        }
        if launcher is not None:
            self._actions["s"] = self.start_components
        if web_url:
            self._actions["w"] = self.open_web

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(sorted(self._actions))

    def dispatch(self, key: str) -> bool:
        """Run the action bound to ``key``; returns False for unknown keys."""
        action = self._actions.get(key.lower())
        if action is None:
            return False
        logger.debug("key %r", key)
        action()
        return True

    def refresh(self) -> None:
        self.status.set("Refreshing...", STATUS_DURATION)
        self._request_refresh()

    def quit(self) -> None:
        self._request_stop()

    def start_components(self) -> None:
        result = self._launcher.start_all()
        self.status.set(result.summary(), STATUS_DURATION)
        self._request_refresh()

    def open_web(self) -> None:
        opener = self._open_url or open_in_gui_browser
        try:
            opened = opener(self._web_url)
        except webbrowser.Error as exc:
            logger.warning("could not open browser: %s", exc)
            opened = False
        if opened:
            self.status.set(f"Opened {self._web_url}", STATUS_DURATION)
        else:
            self.status.set(f"Could not open {self._web_url}", STATUS_DURATION)
