"""
Console shell: wires the session, gateway, route guard and navigator together
and mounts one controller per view.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from console.detail import VulnerabilityDetailController
from console.forms import bot_config_form, sync_task_form
from console.gateway import HttpGateway
from console.guard import Frame, FrameKind, GuardState, RouteGuard
from console.login import LoginController, logout
from console.navigation import DEFAULT_VIEW, LOGIN_VIEW, Navigator
from console.plugins import PluginCatalogController
from console.query import QueryStateController
from console.session import SessionStore
from console.settings import resolve_settings
from console.storage import KeyValueStore, SqliteStore

LOGGER = logging.getLogger(__name__)

VULN_DETAIL_PREFIX = "/vulns/"


class ConsoleApp:
    def __init__(
        self,
        settings: Optional[dict[str, Any]] = None,
        *,
        store: Optional[KeyValueStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or resolve_settings()
        self.navigator = Navigator(initial=DEFAULT_VIEW)
        self.session = SessionStore(
            store or SqliteStore(self.settings["session"]["state_path"]),
            self.navigator,
            key=self.settings["session"]["token_key"],
        )
        self.gateway = HttpGateway(
            self.session,
            self.settings["api"]["base_url"],
            timeout_seconds=float(self.settings["api"]["timeout_seconds"]),
            transport=transport,
        )
        self.guard = RouteGuard(self.session)
        self.frames: list[Frame] = []
        self.view: Any = None
        self.navigator.on_reload(self._on_reload)

    async def aclose(self) -> None:
        self._unmount()
        await self.gateway.aclose()

    def _render(self, frame: Frame) -> Frame:
        LOGGER.debug("Render %s %s", frame.kind.value, frame.path)
        self.frames.append(frame)
        return frame

    def _unmount(self) -> None:
        if isinstance(self.view, QueryStateController):
            self.view.dispose()
        self.view = None

    def _mount_login(self) -> Frame:
        self.view = LoginController(self.gateway, self.session)
        return self._render(Frame(FrameKind.VIEW, LOGIN_VIEW))

    def _on_reload(self, path: str) -> None:
        # A full reload drops whatever was mounted and re-evaluates the guard from scratch.
        self.guard.reset()
        if path == LOGIN_VIEW and isinstance(self.view, LoginController):
            return
        self._unmount()
        if path == LOGIN_VIEW:
            self._mount_login()

    def _build_view(self, path: str) -> Any:
        debounce = self.settings["query"]["debounce_ms"] / 1000.0
        if path in ("/", "/vulns"):
            return QueryStateController(self.gateway.list_vulnerabilities, debounce_seconds=debounce)
        if path.startswith(VULN_DETAIL_PREFIX):
            return VulnerabilityDetailController(self.gateway.get_vulnerability)
        if path == "/secnotice":
            return QueryStateController(
                self.gateway.list_security_notices,
                label="security notices",
                debounce_seconds=debounce,
            )
        if path == "/sync/task":
            return sync_task_form(self.gateway)
        if path == "/dingbot/config":
            return bot_config_form(self.gateway)
        if path == "/plugins":
            return PluginCatalogController(self.gateway)
        raise ValueError(f"Unknown view: {path}")

    async def _mount(self, path: str, view: Any) -> None:
        self.view = view
        if isinstance(view, QueryStateController):
            view.refresh()
            await view.settle()
        elif isinstance(view, VulnerabilityDetailController):
            await view.load(path[len(VULN_DETAIL_PREFIX):])
        else:
            await view.mount()

    async def open(self, path: str) -> Frame:
        self._unmount()
        if path == LOGIN_VIEW:
            self.navigator.navigate(LOGIN_VIEW)
            return self._mount_login()
        view = self._build_view(path)
        self.navigator.navigate(path)
        if self.guard.state is GuardState.UNKNOWN:
            self._render(self.guard.render(path))
            self.guard.resolve()
        frame = self._render(self.guard.render(path))
        if frame.kind is FrameKind.REDIRECT:
            self.navigator.navigate(LOGIN_VIEW)
            return self._mount_login()
        reloads = self.navigator.reloads
        await self._mount(path, view)
        if self.navigator.reloads != reloads:
            # The session ended while the view was loading; the login view is already up.
            return self.frames[-1]
        return frame

    async def login(self, username: str, password: str) -> bool:
        if not isinstance(self.view, LoginController):
            await self.open(LOGIN_VIEW)
        if not await self.view.submit(username, password):
            return False
        await self.open(DEFAULT_VIEW)
        return True

    def logout(self) -> None:
        logout(self.session)
