"""Tests for paginated, filtered and ordered queries."""

import random

import pytest

from itempager.core.errors import ValidationError
from itempager.core.model import PageRequest
from itempager.core.ordering import sort_by_order
from itempager.core.query import QueryEngine
from itempager.core.search import search_items
from itempager.core.store import CollectionStore

pytestmark = pytest.mark.unit


def ids(result):
    return [item.id for item in result.items]


def make_engine(size: int, order=None) -> QueryEngine:
    store = CollectionStore(size)
    if order is not None:
        store.apply_order(order)
    return QueryEngine(store)


def test_first_page_of_default_collection():
    engine = make_engine(1_000_000)
    result = engine.query(PageRequest(page=1, page_size=20))
    assert ids(result) == list(range(1, 21))
    assert [item.value for item in result.items] == list(range(1, 21))
    assert result.total == 1_000_000
    assert result.total_pages == 50_000


def test_last_page_of_default_collection():
    engine = make_engine(1_000_000)
    result = engine.query(PageRequest(page=50_000, page_size=20))
    assert ids(result) == list(range(999_981, 1_000_001))


def test_override_leads_then_ascending_rest():
    engine = make_engine(10, [3, 1])
    assert ids(engine.query(PageRequest(page=1, page_size=5))) == [3, 1, 2, 4, 5]
    assert ids(engine.query(PageRequest(page=2, page_size=5))) == [6, 7, 8, 9, 10]


def test_search_counts_substring_matches():
    engine = make_engine(20)
    result = engine.query(PageRequest(page=1, page_size=20, search="1"))
    assert result.total == 11
    assert ids(result) == [1, 10, 11, 12, 13, 14, 15, 16, 17, 18, 19]


def test_listed_ids_rank_before_unlisted():
    engine = make_engine(100, [5, 1, 3])
    assert ids(engine.query(PageRequest(page=1, page_size=5))) == [5, 1, 3, 2, 4]


def test_search_keeps_override_order_among_matches():
    engine = make_engine(30, [21, 2, 12])
    result = engine.query(PageRequest(page=1, page_size=4, search="2"))
    assert ids(result) == [21, 2, 12, 20]
    assert result.total == 12


def test_duplicated_override_id_takes_its_last_position():
    engine = make_engine(10, [3, 1, 3])
    result = engine.query(PageRequest(page=1, page_size=5))
    assert ids(result) == [1, 3, 2, 4, 5]
    second = engine.query(PageRequest(page=2, page_size=2))
    assert ids(second) == [2, 4]


def test_unknown_and_duplicate_override_ids_are_ignored():
    engine = make_engine(10, [999, 4, 4, 0, 2])
    result = engine.query(PageRequest(page=1, page_size=10))
    assert ids(result) == [4, 2, 1, 3, 5, 6, 7, 8, 9, 10]
    assert result.total == 10


@pytest.mark.parametrize(
    ("page", "expected"),
    [(1, 20), (2, 20), (3, 5), (4, 0), (100, 0)],
)
def test_page_lengths(page, expected):
    engine = make_engine(45)
    result = engine.query(PageRequest(page=page, page_size=20))
    assert len(result.items) == expected
    assert result.total == 45
    assert result.total_pages == 3


def test_search_without_matches():
    engine = make_engine(50)
    result = engine.query(PageRequest(page=1, page_size=20, search="abc"))
    assert result.items == []
    assert result.total == 0
    assert result.total_pages == 0


@pytest.mark.parametrize("kwargs", [{"page": 0}, {"page_size": 0}, {"page": -3}])
def test_invalid_requests_raise(kwargs):
    with pytest.raises(ValidationError):
        PageRequest(**kwargs)


def test_windows_match_full_sort():
    rng = random.Random(1234)
    size = 400
    all_items = list(CollectionStore(size).get_all())
    for _ in range(25):
        order = rng.sample(range(1, size + 40), rng.randint(0, 60))
        term = rng.choice(["", "1", "3", "12", "40", "9"])
        page_size = rng.randint(1, 37)
        engine = make_engine(size, order)
        expected = [item.id for item in sort_by_order(search_items(all_items, term), order)]
        pages = -(-len(expected) // page_size) + 1
        collected = []
        for page in range(1, pages + 1):
            result = engine.query(PageRequest(page=page, page_size=page_size, search=term))
            assert result.total == len(expected)
            collected.extend(ids(result))
        assert collected == expected
