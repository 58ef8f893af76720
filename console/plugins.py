from __future__ import annotations

import logging
from typing import Any, Optional

from console.errors import AuthExpired, RequestFailed
from console.models import PluginDescriptor

LOGGER = logging.getLogger(__name__)


class PluginCatalogController:
    """Lists the vulnerability-source and notice-source adapters the backend ships."""

    def __init__(self, gateway: Any):
        self._gateway = gateway
        self.plugins: list[PluginDescriptor] = []
        self.notice_sources: list[PluginDescriptor] = []
        self.loading = False
        self.error: Optional[str] = None

    async def load(self) -> None:
        self.loading = True
        self.error = None
        try:
            plugins = await self._gateway.list_plugins()
            notice_sources = await self._gateway.list_notice_sources()
        except AuthExpired:
            return
        except RequestFailed as exc:
            LOGGER.warning("Loading plugin catalog failed: %s", exc)
            self.error = "Failed to load plugins"
            return
        finally:
            self.loading = False
        self.plugins = plugins
        self.notice_sources = notice_sources

    mount = load

    def source_options(self) -> list[tuple[str, str]]:
        """(value, label) pairs for the vulnerability ``source`` filter."""
        return [(plugin.name, plugin.display_name) for plugin in self.plugins]

    def notice_source_options(self) -> list[tuple[str, str]]:
        return [(plugin.name, plugin.display_name) for plugin in self.notice_sources]
