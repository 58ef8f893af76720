import asyncio

import pytest

from console.errors import RequestFailed
from console.models import Page
from console.query import (
    FilterState,
    QueryStateController,
    changed_fields,
    notice_params,
    should_refetch,
    total_pages,
    vulnerability_params,
)


class ControlledFetch:
    """Fetch double whose responses are released by the test, in any order."""

    def __init__(self):
        self.calls = []
        self._gates = []

    async def __call__(self, filters):
        gate = asyncio.get_running_loop().create_future()
        self.calls.append(filters)
        self._gates.append(gate)
        return await gate

    def respond(self, index, items, total=None):
        self._gates[index].set_result(Page(data=items, total_count=len(items) if total is None else total))

    def fail(self, index, message="boom"):
        self._gates[index].set_exception(RequestFailed(message, 500))


async def _drain():
    for _ in range(5):
        await asyncio.sleep(0)


def test_filter_state_rejects_bad_page():
    with pytest.raises(ValueError):
        FilterState(page_no=0)
    with pytest.raises(ValueError):
        FilterState(page_size=0)


@pytest.mark.parametrize("field,value", [("cve", "CVE-2021-44228"), ("title", "Log4j"), ("pushed", True), ("source", "avd")])
def test_any_filter_edit_resets_page(field, value):
    state = FilterState(page_no=4)
    updated = state.with_filters(**{field: value})
    assert updated.page_no == 1
    assert getattr(updated, field) == value


def test_noop_filter_edit_keeps_page():
    state = FilterState(title="x", page_no=3)
    assert state.with_filters(title="x") is state


def test_unknown_filter_field_rejected():
    with pytest.raises(ValueError):
        FilterState().with_filters(severity="High")


def test_changed_fields_and_refetch():
    a = FilterState()
    assert should_refetch(None, a)
    assert not should_refetch(a, FilterState())
    assert changed_fields(a, a.with_page(2)) == {"page_no"}


def test_total_pages():
    assert total_pages(0, 10) == 0
    assert total_pages(10, 10) == 1
    assert total_pages(11, 10) == 2


def test_params_omit_unset_filters():
    assert vulnerability_params(FilterState()) == {"page_no": 1, "page_size": 10}
    assert vulnerability_params(FilterState(cve=" ", title="", source="")) == {"page_no": 1, "page_size": 10}
    params = vulnerability_params(FilterState(cve="CVE-1", pushed=True, source="avd", page_no=2))
    assert params == {"page_no": 2, "page_size": 10, "cve": "CVE-1", "pushed": "true", "source_name": "avd"}
    assert "cve" not in notice_params(FilterState(cve="CVE-1"))


@pytest.mark.asyncio
async def test_latest_request_wins_when_older_resolves_last():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch)
    controller.refresh()
    controller.set_filters(title="Log4j")
    await _drain()
    assert len(fetch.calls) == 2
    assert controller.sequence == 2

    fetch.respond(1, ["log4j-a", "log4j-b", "log4j-c"])
    await _drain()
    assert controller.items == ["log4j-a", "log4j-b", "log4j-c"]
    assert controller.total_count == 3
    assert not controller.loading

    fetch.respond(0, ["stale"] * 10, total=42)
    await controller.settle()
    assert controller.items == ["log4j-a", "log4j-b", "log4j-c"]
    assert controller.total_count == 3
    assert controller.filters.title == "Log4j"


@pytest.mark.asyncio
async def test_stale_failure_is_ignored():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch)
    controller.refresh()
    controller.set_filters(cve="CVE-2021-44228")
    await _drain()
    fetch.fail(0)
    fetch.respond(1, ["hit"])
    await controller.settle()
    assert controller.error is None
    assert controller.items == ["hit"]


@pytest.mark.asyncio
async def test_failure_keeps_previous_results():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch)
    controller.refresh()
    await _drain()
    fetch.respond(0, ["a", "b"], total=12)
    await _drain()

    assert controller.next_page()
    await _drain()
    fetch.fail(1)
    await controller.settle()
    assert controller.error == "Failed to load vulnerabilities"
    assert controller.items == ["a", "b"]
    assert controller.total_count == 12
    assert not controller.loading


@pytest.mark.asyncio
async def test_page_navigation_bounds():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch)
    controller.refresh()
    await _drain()
    fetch.respond(0, list(range(10)), total=25)
    await _drain()
    assert controller.total_pages == 3
    assert controller.showing_range() == (1, 10)
    assert not controller.has_previous and controller.has_next

    assert not controller.previous_page()
    assert not controller.go_to_page(4)
    assert not controller.go_to_page(1)
    assert controller.sequence == 1

    assert controller.go_to_page(3)
    await _drain()
    assert fetch.calls[-1].page_no == 3
    fetch.respond(1, list(range(5)), total=25)
    await controller.settle()
    assert controller.showing_range() == (21, 25)
    assert not controller.has_next


@pytest.mark.asyncio
async def test_go_to_page_allowed_before_total_known():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch)
    assert controller.go_to_page(5)
    await _drain()
    assert fetch.calls[0].page_no == 5
    fetch.respond(0, list(range(5)), total=45)
    await controller.settle()
    assert controller.filters.page_no == 5
    assert controller.showing_range() == (41, 45)


@pytest.mark.asyncio
async def test_filter_edit_from_later_page_requests_page_one():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch, initial=FilterState(page_no=3))
    controller.set_filters(pushed=False)
    await _drain()
    assert fetch.calls[-1].page_no == 1
    assert fetch.calls[-1].pushed is False
    fetch.respond(0, [])
    await controller.settle()


@pytest.mark.asyncio
async def test_debounce_batches_rapid_edits():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch, debounce_seconds=0.01)
    controller.set_filters(title="L")
    controller.set_filters(title="Lo")
    controller.set_filters(title="Log4j")
    assert controller.loading
    await asyncio.sleep(0.05)
    assert [c.title for c in fetch.calls] == ["Log4j"]
    fetch.respond(0, ["x"])
    await controller.settle()
    assert controller.items == ["x"]
    assert not controller.loading


@pytest.mark.asyncio
async def test_dispose_discards_late_results():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch)
    controller.refresh()
    await _drain()
    controller.dispose()
    fetch.respond(0, ["late"])
    await controller.settle()
    assert controller.items == []
    assert not controller.refresh()
    assert not controller.set_filters(title="x")
    assert len(fetch.calls) == 1


@pytest.mark.asyncio
async def test_inflight_response_during_debounce_is_stale():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch, debounce_seconds=0.05)
    controller.refresh()
    await asyncio.sleep(0.08)
    assert len(fetch.calls) == 1

    controller.set_filters(title="Log4j")
    fetch.respond(0, ["unfiltered"] * 10, total=25)
    await _drain()
    assert len(fetch.calls) == 1
    assert controller.items == []
    assert controller.total_count is None
    assert controller.loading

    await asyncio.sleep(0.08)
    assert fetch.calls[-1].title == "Log4j"
    fetch.respond(1, ["log4j-a", "log4j-b", "log4j-c"])
    await controller.settle()
    assert controller.items == ["log4j-a", "log4j-b", "log4j-c"]
    assert controller.total_count == 3
    assert not controller.loading


@pytest.mark.asyncio
async def test_inflight_failure_during_debounce_sets_no_error():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch, debounce_seconds=0.05)
    controller.refresh()
    await asyncio.sleep(0.08)
    controller.set_filters(cve="CVE-2021-44228")
    fetch.fail(0)
    await _drain()
    assert controller.error is None

    await asyncio.sleep(0.08)
    fetch.respond(1, ["hit"])
    await controller.settle()
    assert controller.items == ["hit"]


@pytest.mark.asyncio
async def test_page_past_the_end_moves_to_last_page():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch, initial=FilterState(page_no=5))
    controller.refresh()
    await _drain()
    fetch.respond(0, [], total=25)
    await _drain()
    assert len(fetch.calls) == 2
    assert fetch.calls[1].page_no == 3
    assert controller.filters.page_no == 3
    assert controller.loading

    fetch.respond(1, list(range(5)), total=25)
    await controller.settle()
    assert controller.filters.page_no <= controller.total_pages
    assert controller.showing_range() == (21, 25)
    assert controller.has_previous and controller.previous_page()
    await _drain()
    assert fetch.calls[-1].page_no == 2
    fetch.respond(2, list(range(10)), total=25)
    await controller.settle()


@pytest.mark.asyncio
async def test_page_past_the_end_of_empty_result_moves_to_first_page():
    fetch = ControlledFetch()
    controller = QueryStateController(fetch, initial=FilterState(page_no=4))
    controller.refresh()
    await _drain()
    fetch.respond(0, [], total=0)
    await _drain()
    assert fetch.calls[-1].page_no == 1
    fetch.respond(1, [], total=0)
    await controller.settle()
    assert controller.filters.page_no == 1
    assert controller.showing_range() == (0, 0)
    assert not controller.has_previous


def test_showing_range_never_inverted():
    controller = QueryStateController(ControlledFetch(), initial=FilterState(page_no=9))
    controller.total_count = 25
    assert controller.showing_range() == (0, 0)
