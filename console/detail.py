from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from console.errors import AuthExpired, NotFound, RequestFailed
from console.models import VulnerabilityDetail

LOGGER = logging.getLogger(__name__)


class VulnerabilityDetailController:
    """Per-id detail view. A missing record is a view state, not an error banner."""

    def __init__(self, fetch: Callable[[int | str], Awaitable[VulnerabilityDetail]]):
        self._fetch = fetch
        self.vuln_id: Optional[int | str] = None
        self.vulnerability: Optional[VulnerabilityDetail] = None
        self.not_found = False
        self.loading = False
        self.error: Optional[str] = None

    async def load(self, vuln_id: int | str) -> None:
        self.vuln_id = vuln_id
        self.loading = True
        self.error = None
        self.not_found = False
        try:
            detail = await self._fetch(vuln_id)
        except AuthExpired:
            return
        except NotFound:
            if vuln_id == self.vuln_id:
                self.vulnerability = None
                self.not_found = True
            return
        except RequestFailed as exc:
            if vuln_id == self.vuln_id:
                LOGGER.warning("Loading vulnerability %s failed: %s", vuln_id, exc)
                self.error = "Failed to load vulnerability details"
            return
        finally:
            if vuln_id == self.vuln_id:
                self.loading = False
        if vuln_id != self.vuln_id:
            LOGGER.debug("Discarding detail for %s, view moved to %s", vuln_id, self.vuln_id)
            return
        self.vulnerability = detail
