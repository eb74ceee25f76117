"""Tests for the virtual renderer and the infinite scroll trigger."""

import asyncio

import pytest

from itempager.client.cache import ClientCache
from itempager.client.fetcher import WindowFetcher
from itempager.client.viewport import InfiniteScrollTrigger, VirtualRenderer, VisibleRange
from itempager.core.model import Item
from tests.api_utils import FakeApi

pytestmark = pytest.mark.unit


def test_total_size_for_a_million_rows():
    assert VirtualRenderer(35, 5).total_size(1_000_000) == 35_000_000
    assert VirtualRenderer(35, 5).total_size(-3) == 0


def test_visible_range_includes_overscan():
    renderer = VirtualRenderer(35, 5)
    window = renderer.visible_range(offset=350, height=700, count=1_000)
    assert window == VisibleRange(start=5, end=34)
    assert len(window) == 30


def test_visible_range_is_clamped():
    renderer = VirtualRenderer(35, 5)
    assert renderer.visible_range(0, 700, 0) is None
    assert renderer.visible_range(-100, 70, 3) == VisibleRange(0, 2)
    assert renderer.visible_range(1_000_000, 700, 10) == VisibleRange(4, 9)
    assert renderer.visible_range(0, 0, 10) == VisibleRange(0, 5)


def test_invalid_geometry_is_rejected():
    with pytest.raises(ValueError):
        VirtualRenderer(0, 5)
    with pytest.raises(ValueError):
        VirtualRenderer(35, -1)


def test_rows_render_placeholders_for_pending_indices():
    cache = ClientCache()
    cache.replace([Item(1, 1), Item(2, 2)], total=None)
    rows = VirtualRenderer(10, 0).rows(cache, 0, 100, loading=True)
    assert [row.index for row in rows] == [0, 1, 2]
    assert [row.start for row in rows] == [0, 10, 20]
    assert [row.is_placeholder for row in rows] == [False, False, True]


def make_trigger(size: int = 100, page_size: int = 20):
    api = FakeApi(size=size)
    fetcher = WindowFetcher(api, page_size=page_size, timeout=5)
    launched = []
    trigger = InfiniteScrollTrigger(fetcher, launched.append)
    return api, fetcher, trigger, launched


def test_trigger_waits_for_total():
    _api, _fetcher, trigger, launched = make_trigger()
    assert trigger.check(50) is None
    assert launched == []


def test_trigger_never_duplicates_a_request():
    api, fetcher, trigger, launched = make_trigger()
    asyncio.run(fetcher.load_page(1))

    assert trigger.check(10) is None
    assert trigger.check(25) == 2
    assert trigger.check(25) is None
    assert trigger.check(45) is None
    assert fetcher.loading
    assert len(launched) == 1

    assert asyncio.run(launched[0]) is True
    assert not fetcher.loading
    assert fetcher.current_page == 2
    assert [call[0] for call in api.page_calls] == [1, 2]
    assert trigger.check(25) is None


def test_trigger_stops_when_everything_is_cached():
    _api, fetcher, trigger, launched = make_trigger(size=15)
    asyncio.run(fetcher.load_page(1))
    assert fetcher.cache.loaded_count == 15
    assert trigger.check(40) is None
    assert launched == []


def test_check_range_back_fills_skipped_pages():
    api, fetcher, trigger, launched = make_trigger(size=200, page_size=10)
    asyncio.run(fetcher.load_page(1))
    asyncio.run(fetcher.load_page(5))
    assert fetcher.current_page == 5

    assert trigger.check_range(VisibleRange(22, 35)) == 3
    asyncio.run(launched.pop())
    assert trigger.check_range(VisibleRange(22, 35)) == 4
    asyncio.run(launched.pop())
    assert trigger.check_range(VisibleRange(22, 35)) is None
    assert [call[0] for call in api.page_calls] == [1, 5, 3, 4]


def test_check_range_pauses_after_an_error():
    api, fetcher, trigger, launched = make_trigger(size=200, page_size=10)
    asyncio.run(fetcher.load_page(1))
    asyncio.run(fetcher.load_page(5))
    api.fail_pages.add(3)
    trigger.check_range(VisibleRange(22, 25))
    assert asyncio.run(launched.pop()) is False
    assert fetcher.failed_page == 3
    assert trigger.check_range(VisibleRange(22, 25)) is None
