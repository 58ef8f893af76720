from __future__ import annotations

import logging
from typing import Callable

LOGGER = logging.getLogger(__name__)

LOGIN_VIEW = "/login"
DEFAULT_VIEW = "/vulns"

ReloadListener = Callable[[str], None]


class Navigator:
    """
    Tracks the active view.

    A soft navigation only changes the current path. A hard navigation models a
    full page load: every reload listener runs so mounted views can tear down
    before anything else is rendered.
    """

    def __init__(self, initial: str = DEFAULT_VIEW):
        self.current = initial
        self.history: list[tuple[str, bool]] = []
        self.reloads = 0
        self._reload_listeners: list[ReloadListener] = []

    def navigate(self, path: str) -> None:
        self.current = path
        self.history.append((path, False))

    def hard_navigate(self, path: str) -> None:
        LOGGER.info("Hard navigation to %s", path)
        self.current = path
        self.history.append((path, True))
        self.reloads += 1
        for listener in list(self._reload_listeners):
            listener(path)

    def on_reload(self, listener: ReloadListener) -> Callable[[], None]:
        self._reload_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._reload_listeners:
                self._reload_listeners.remove(listener)

        return _unsubscribe
