"""Tests for small utility helpers."""

import threading
from dataclasses import dataclass
from enum import Enum

import pytest

from itempager.util.cancellation import (
    CancellationEvent,
    OperationCancelledError,
    raise_if_cancelled,
)
from itempager.util.json import make_json_safe
from itempager.util.time import utc_now_iso

pytestmark = pytest.mark.unit


def test_cancellation_event_flags_and_raises():
    event = CancellationEvent()
    assert not event.cancelled
    event.raise_if_cancelled()
    event.set()
    assert event.cancelled
    with pytest.raises(OperationCancelledError):
        event.raise_if_cancelled()


def test_cancellation_is_visible_across_threads():
    event = CancellationEvent()
    worker = threading.Thread(target=event.set)
    worker.start()
    worker.join()
    with pytest.raises(OperationCancelledError):
        raise_if_cancelled(event)
    raise_if_cancelled(None)


class Colour(Enum):
    RED = "red"


@dataclass
class Point:
    x: int
    y: int


def test_make_json_safe_converts_containers():
    value = {
        1: (1, 2),
        "tags": {"b", "a"},
        "colour": Colour.RED,
        "point": Point(1, 2),
        "other": object,
    }
    safe = make_json_safe(value)
    assert safe["1"] == [1, 2]
    assert safe["tags"] == ["a", "b"]
    assert safe["colour"] == "red"
    assert safe["point"] == {"x": 1, "y": 2}
    assert safe["other"] == repr(object)


def test_utc_now_iso_has_second_precision():
    stamp = utc_now_iso()
    assert stamp.endswith("+00:00")
    assert "." not in stamp
