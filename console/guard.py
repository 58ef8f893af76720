from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from console.navigation import LOGIN_VIEW
from console.session import SessionStore


class GuardState(str, Enum):
    UNKNOWN = "unknown"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class FrameKind(str, Enum):
    LOADING = "loading"
    REDIRECT = "redirect"
    VIEW = "view"


@dataclass(frozen=True)
class Frame:
    kind: FrameKind
    path: str


class RouteGuard:
    """
    Gates protected views behind session presence.

    Starts UNKNOWN on every page load and renders a neutral loading frame until
    resolve() has consulted the session. Once resolved the state only changes
    when the session does.
    """

    def __init__(self, session: SessionStore):
        self._session = session
        self.state = GuardState.UNKNOWN
        session.subscribe(self._on_session_change)

    def reset(self) -> None:
        self.state = GuardState.UNKNOWN

    def resolve(self) -> GuardState:
        self._on_session_change(self._session.get_token())
        return self.state

    def render(self, path: str) -> Frame:
        if self.state is GuardState.UNKNOWN:
            return Frame(FrameKind.LOADING, path)
        if self.state is GuardState.UNAUTHENTICATED:
            return Frame(FrameKind.REDIRECT, LOGIN_VIEW)
        return Frame(FrameKind.VIEW, path)

    def _on_session_change(self, token: Optional[str]) -> None:
        self.state = GuardState.AUTHENTICATED if token else GuardState.UNAUTHENTICATED
