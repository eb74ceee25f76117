"""Tests for order override helpers."""

import pytest

from itempager.core.model import Item
from itempager.core.ordering import (
    move_index,
    order_key,
    rank_map,
    reconcile_subset,
    sort_by_order,
)

pytestmark = pytest.mark.unit


def items(*ids: int) -> list[Item]:
    return [Item(i, i) for i in ids]


def test_rank_map_keeps_last_position_of_duplicates():
    assert rank_map([4, 2, 4, 9]) == {4: 2, 2: 1, 9: 3}


def test_sort_by_order_places_duplicate_at_its_last_occurrence():
    result = sort_by_order(items(1, 2, 3, 4, 5), [3, 1, 3])
    assert [item.id for item in result] == [1, 3, 2, 4, 5]


def test_sort_by_order_lists_override_first_then_ascending():
    result = sort_by_order(items(1, 2, 3, 4, 5, 6), [5, 1, 3])
    assert [item.id for item in result] == [5, 1, 3, 2, 4, 6]


def test_sort_by_order_without_override_is_identity():
    source = items(3, 1, 2)
    assert sort_by_order(source, []) == source


def test_resorting_sorted_sequence_is_noop():
    order = [8, 2, 5]
    once = sort_by_order(items(*range(1, 11)), order)
    assert sort_by_order(once, order) == once


def test_order_key_ignores_unknown_ids():
    key = order_key(rank_map([99, 2]))
    assert sorted(items(3, 2, 1), key=key) == items(2, 1, 3)


def test_move_index_moves_forward_and_backward():
    assert move_index([1, 2, 3, 4], 0, 2) == [2, 3, 1, 4]
    assert move_index([1, 2, 3, 4], 3, 0) == [4, 1, 2, 3]


def test_move_index_rejects_out_of_range():
    with pytest.raises(IndexError):
        move_index([1, 2], 2, 0)
    with pytest.raises(IndexError):
        move_index([1, 2], 0, 5)


def test_reconcile_subset_keeps_unfiltered_slots():
    full = ["a1", "b", "a2", "c", "a3"]
    positions = [0, 2, 4]
    reordered = ["a3", "a1", "a2"]
    assert reconcile_subset(full, positions, reordered) == ["a3", "b", "a1", "c", "a2"]


def test_reconcile_subset_requires_matching_lengths():
    with pytest.raises(ValueError):
        reconcile_subset([1, 2, 3], [0, 1], [1])
