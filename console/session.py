"""
Authentication session shared by every view.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from console.navigation import LOGIN_VIEW, Navigator
from console.settings import SESSION_TOKEN_KEY
from console.storage import KeyValueStore

LOGGER = logging.getLogger(__name__)

SessionListener = Callable[[Optional[str]], None]


class SessionStore:
    """
    Holds the bearer credential for the lifetime of the page.

    The token is opaque: nothing here inspects or validates it. It is read once
    from the persistent store at construction and written back on every change.
    Only the login flow calls set_token and only the gateway's 401 handler (or an
    explicit logout) calls clear.
    """

    def __init__(self, store: KeyValueStore, navigator: Navigator, key: str = SESSION_TOKEN_KEY):
        self._store = store
        self._navigator = navigator
        self._key = key
        self._token: Optional[str] = store.get(key) or None
        self._listeners: list[SessionListener] = []

    def get_token(self) -> Optional[str]:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def set_token(self, token: str) -> None:
        self._token = token
        self._store.set(self._key, token)
        LOGGER.info("Session established")
        self._notify()

    def clear(self) -> None:
        """Drop the credential and force a full reload onto the login view."""
        self._token = None
        self._store.delete(self._key)
        LOGGER.info("Session cleared")
        self._notify()
        self._navigator.hard_navigate(LOGIN_VIEW)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._token)
