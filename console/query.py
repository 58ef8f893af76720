"""
Filter and pagination state for the paginated record lists, kept in sync with
the backend through sequence-tagged requests.

Every scheduled fetch is tagged with a monotonically increasing sequence number.
A response is applied only when its tag is still the highest one issued, so the
visible page always reflects the most recently *requested* filter state even if
older requests finish later. In-flight calls are never aborted; superseded
results are simply dropped.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from console.errors import AuthExpired, RequestFailed
from console.models import Page
from console.settings import PAGE_SIZE

LOGGER = logging.getLogger(__name__)

R = TypeVar("R")

FILTER_FIELDS = ("cve", "title", "pushed", "source")


@dataclass(frozen=True)
class FilterState:
    cve: str = ""
    title: str = ""
    pushed: Optional[bool] = None
    source: str = ""
    page_no: int = 1
    page_size: int = PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page_no < 1:
            raise ValueError(f"page_no must be >= 1, got {self.page_no}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")
        if self.pushed is not None and not isinstance(self.pushed, bool):
            raise ValueError("pushed must be True, False or None")

    def with_filters(self, **changes: Any) -> "FilterState":
        """Apply field edits; any real edit sends the view back to page 1."""
        unknown = set(changes) - set(FILTER_FIELDS)
        if unknown:
            raise ValueError(f"Unknown filter fields: {', '.join(sorted(unknown))}")
        updated = replace(self, **changes)
        if not changed_fields(self, updated):
            return self
        return replace(updated, page_no=1)

    def with_page(self, page_no: int) -> "FilterState":
        return replace(self, page_no=page_no)


def changed_fields(previous: Optional[FilterState], current: FilterState) -> set[str]:
    names = [f.name for f in fields(FilterState)]
    if previous is None:
        return set(names)
    return {name for name in names if getattr(previous, name) != getattr(current, name)}


def should_refetch(previous: Optional[FilterState], current: FilterState) -> bool:
    return bool(changed_fields(previous, current))


def total_pages(total_count: int, page_size: int) -> int:
    return math.ceil(total_count / page_size) if total_count > 0 else 0


def _text(value: str) -> str:
    return (value or "").strip()


def notice_params(filters: FilterState) -> dict[str, Any]:
    params: dict[str, Any] = {"page_no": filters.page_no, "page_size": filters.page_size}
    if _text(filters.title):
        params["title"] = _text(filters.title)
    if filters.pushed is not None:
        params["pushed"] = "true" if filters.pushed else "false"
    if _text(filters.source):
        params["source_name"] = _text(filters.source)
    return params


def vulnerability_params(filters: FilterState) -> dict[str, Any]:
    params = notice_params(filters)
    if _text(filters.cve):
        params["cve"] = _text(filters.cve)
    return params


class QueryStateController(Generic[R]):
    """
    Owns a FilterState, the last page of results and its total count.

    Mutators are synchronous and must be called from inside the running event
    loop; they return True when a fetch was scheduled. ``debounce_seconds``
    batches rapid edits into one request; the sequence rule still decides which
    response is shown.
    """

    def __init__(
        self,
        fetch_page: Callable[[FilterState], Awaitable[Page[R]]],
        *,
        label: str = "vulnerabilities",
        page_size: int = PAGE_SIZE,
        debounce_seconds: float = 0.0,
        initial: Optional[FilterState] = None,
    ):
        self._fetch_page = fetch_page
        self.label = label
        self.debounce_seconds = debounce_seconds
        self.filters = initial or FilterState(page_size=page_size)
        self.items: list[R] = []
        self.total_count: Optional[int] = None
        self.loading = False
        self.error: Optional[str] = None
        self._issued = 0
        self._pending: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()
        self._disposed = False

    @property
    def sequence(self) -> int:
        return self._issued

    @property
    def total_pages(self) -> int:
        if self.total_count is None:
            return 0
        return total_pages(self.total_count, self.filters.page_size)

    @property
    def has_previous(self) -> bool:
        return self.filters.page_no > 1

    @property
    def has_next(self) -> bool:
        return self.total_count is not None and self.filters.page_no < self.total_pages

    def showing_range(self) -> tuple[int, int]:
        if not self.total_count:
            return (0, 0)
        start = (self.filters.page_no - 1) * self.filters.page_size + 1
        end = min(self.filters.page_no * self.filters.page_size, self.total_count)
        if start > end:
            return (0, 0)
        return (start, end)

    def refresh(self) -> bool:
        """Fetch the current state again (first mount, or a manual retry)."""
        if self._disposed:
            return False
        self._schedule(self.filters)
        return True

    def set_filters(self, **changes: Any) -> bool:
        return self._apply(self.filters.with_filters(**changes))

    def go_to_page(self, page_no: int) -> bool:
        if page_no < 1:
            return False
        if self.total_count is not None and page_no > self.total_pages:
            return False
        return self._apply(self.filters.with_page(page_no))

    def next_page(self) -> bool:
        return self.go_to_page(self.filters.page_no + 1)

    def previous_page(self) -> bool:
        return self.go_to_page(self.filters.page_no - 1)

    async def settle(self) -> None:
        """Wait until no batched or in-flight request remains."""
        while True:
            tasks = set(self._inflight)
            if self._pending is not None and not self._pending.done():
                tasks.add(self._pending)
            if not tasks:
                return
            await asyncio.wait(tasks)

    def dispose(self) -> None:
        """Unmount: every outstanding result becomes stale."""
        self._disposed = True
        self._issued += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self.loading = False

    def _apply(self, state: FilterState) -> bool:
        if self._disposed or not should_refetch(self.filters, state):
            return False
        self._schedule(state)
        return True

    def _schedule(self, state: FilterState) -> None:
        if self._disposed:
            return
        self.filters = state
        self.loading = True
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        # The tag is taken at edit time so a batched request already supersedes
        # everything sent before it.
        self._issued += 1
        if self.debounce_seconds > 0:
            self._pending = asyncio.create_task(self._issue_later(self._issued, state))
        else:
            self._issue(self._issued, state)

    async def _issue_later(self, seq: int, state: FilterState) -> None:
        await asyncio.sleep(self.debounce_seconds)
        self._pending = None
        self._issue(seq, state)

    def _issue(self, seq: int, state: FilterState) -> None:
        task = asyncio.create_task(self._run(seq, state))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def _is_current(self, seq: int) -> bool:
        return not self._disposed and seq == self._issued

    async def _run(self, seq: int, state: FilterState) -> None:
        try:
            page = await self._fetch_page(state)
        except AuthExpired:
            if self._is_current(seq):
                self.loading = False
            return
        except RequestFailed as exc:
            if not self._is_current(seq):
                LOGGER.debug("Ignoring failure of superseded %s request #%d", self.label, seq)
                return
            LOGGER.warning("Loading %s failed: %s", self.label, exc)
            self.error = f"Failed to load {self.label}"
            self.loading = self._pending is not None
            return
        if not self._is_current(seq):
            LOGGER.debug("Discarding stale %s response #%d (latest #%d)", self.label, seq, self._issued)
            return
        self.items = list(page.data)
        self.total_count = page.total_count
        self.error = None
        last_page = max(1, self.total_pages)
        if state.page_no > last_page:
            LOGGER.debug("Page %d of %s is past the end, moving to page %d", state.page_no, self.label, last_page)
            self._schedule(state.with_page(last_page))
            return
        self.loading = self._pending is not None
