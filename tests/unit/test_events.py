"""
test_events.py - Unit tests for the event channel
"""

import copy
import pytest

from trackledger import RoyaltyDistributed, EventLog, EventSink, MathOverflow, U64_MAX


def test_event_is_frozen():
    event = RoyaltyDistributed("T", 100, 10, 90)
    with pytest.raises(AttributeError):
        event.total_amount = 5


def test_event_log_is_an_event_sink():
    assert isinstance(EventLog(), EventSink)


def test_publish_preserves_order():
    log = EventLog()
    a = RoyaltyDistributed("T1", 100, 10, 90)
    b = RoyaltyDistributed("T2", 50, 5, 45)
    log.publish(a)
    log.publish(b)
    assert log.events() == [a, b]
    assert list(log) == [a, b]
    assert len(log) == 2


def test_for_track_and_total():
    log = EventLog([
        RoyaltyDistributed("T1", 500_000, 50_000, 450_000),
        RoyaltyDistributed("T2", 7, 0, 7),
        RoyaltyDistributed("T1", 500_000, 50_000, 450_000),
        "unrelated",
    ])
    assert len(log.for_track("T1")) == 2
    assert log.total_distributed("T1") == 1_000_000
    assert log.total_distributed("T3") == 0


def test_total_is_checked():
    log = EventLog([RoyaltyDistributed("T", U64_MAX, 0, U64_MAX), RoyaltyDistributed("T", 1, 0, 1)])
    with pytest.raises(MathOverflow):
        log.total_distributed("T")


def test_copy_is_independent():
    log = EventLog([RoyaltyDistributed("T", 1, 0, 1)])
    copied = copy.copy(log)
    copied.publish(RoyaltyDistributed("T", 2, 0, 2))
    assert len(log) == 1
    assert len(copied) == 2


def test_events_returns_copy():
    log = EventLog()
    log.events().append("x")
    assert len(log) == 0
