"""Tests for the client selection manager."""

import asyncio

import pytest

from itempager.client.local_state import LocalStateStore
from itempager.client.selection import SelectionManager
from itempager.core.model import StateSnapshot
from tests.api_utils import FakeApi

pytestmark = pytest.mark.unit


@pytest.fixture
def store(tmp_path) -> LocalStateStore:
    return LocalStateStore(tmp_path / "state.json")


def test_toggle_is_self_inverse(store):
    manager = SelectionManager(FakeApi(), store)
    assert manager.toggle(7) is True
    assert 7 in manager
    assert manager.toggle(7) is False
    assert 7 not in manager
    assert manager.dirty
    assert store.dirty


def test_select_all_and_clear(store):
    manager = SelectionManager(FakeApi(), store)
    manager.toggle(99)
    manager.select_all([1, 2, 3])
    assert manager.selected == {1, 2, 3}
    assert len(manager) == 3
    manager.clear()
    assert manager.selected == set()
    assert LocalStateStore(store.path).selected == set()


def test_push_marks_synced(store):
    api = FakeApi()
    manager = SelectionManager(api, store)
    manager.select_all([4, 2])
    assert asyncio.run(manager.push()) == 1
    assert api.selected_calls == [[2, 4]]
    assert not manager.dirty
    assert manager.version == 1
    reloaded = LocalStateStore(store.path)
    assert reloaded.synced_version == 1
    assert not reloaded.dirty


def test_failed_push_keeps_local_edits(store):
    api = FakeApi()
    api.selected_failures = 1
    manager = SelectionManager(api, store)
    manager.toggle(5)
    assert asyncio.run(manager.push()) is None
    assert manager.dirty
    assert manager.last_error is not None
    assert LocalStateStore(store.path).selected == {5}

    assert asyncio.run(manager.push()) == 1
    assert manager.last_error is None
    assert api.service.get_state().selected == frozenset({5})


def test_edit_during_push_stays_dirty(store):
    api = FakeApi()
    manager = SelectionManager(api, store)
    manager.toggle(1)
    original = api.save_selected_async

    async def save_and_edit(selected, *, version=None):
        manager.toggle(2)
        return await original(selected, version=version)

    api.save_selected_async = save_and_edit
    asyncio.run(manager.push())
    assert manager.dirty
    assert manager.selected == {1, 2}
    assert api.service.get_state().selected == frozenset({1})


def test_reconcile_adopts_server_when_clean(store):
    manager = SelectionManager(FakeApi(), store)
    server = StateSnapshot(selected=frozenset({8, 9}), version=4)
    assert manager.reconcile(server) is False
    assert manager.selected == {8, 9}
    assert manager.version == 4
    assert LocalStateStore(store.path).selected == {8, 9}


def test_reconcile_keeps_dirty_local_edits(store):
    manager = SelectionManager(FakeApi(), store)
    manager.toggle(3)
    server = StateSnapshot(selected=frozenset({8}), version=4)
    assert manager.reconcile(server) is True
    assert manager.selected == {3}


def test_selection_survives_restart(store):
    manager = SelectionManager(FakeApi(), store)
    manager.select_all([10, 11])
    restored = SelectionManager(FakeApi(), LocalStateStore(store.path))
    assert restored.selected == {10, 11}
    assert restored.dirty
