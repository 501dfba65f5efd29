"""Tests for the event queue."""

import pytest

from cloudsim_engine.core.events import EventQueue, SimEvent, SimTag


def _event(time, data=None, tag=SimTag.CLOUDLET_SUBMIT, source=0):
    return SimEvent(time=time, tag=tag, source=source, destination=1, data=data)


def test_queue_orders_by_time_and_keeps_equal_times_fifo():
    queue = EventQueue()
    for time, label in [(5, "a"), (3, "b"), (3, "c"), (7, "d")]:
        queue.insert(_event(time, label))

    assert [event.time for event in queue] == [3, 3, 5, 7]
    assert [event.data for event in queue] == ["b", "c", "a", "d"]


def test_pop_returns_earliest_first():
    queue = EventQueue()
    for time in [2.0, 1.0, 1.0, 0.5]:
        queue.insert(_event(time, time))

    popped = [queue.pop().time for _ in range(len(queue))]

    assert popped == [0.5, 1.0, 1.0, 2.0]
    assert not queue


def test_many_events_at_same_time_keep_insertion_order():
    queue = EventQueue()
    for i in range(50):
        queue.insert(_event(1.0, i))
    queue.insert(_event(0.0, "early"))

    assert [event.data for event in queue] == ["early"] + list(range(50))


def test_late_insert_lands_after_equal_times():
    queue = EventQueue()
    queue.insert(_event(1.0, "x"))
    queue.insert(_event(4.0, "y"))
    queue.insert(_event(1.0, "z"))

    assert [event.data for event in queue] == ["x", "z", "y"]


def test_peek_does_not_remove():
    queue = EventQueue()
    assert queue.peek() is None
    queue.insert(_event(1.0))

    assert queue.peek().time == 1.0
    assert queue.size() == 1


def test_pop_from_empty_queue_raises():
    with pytest.raises(IndexError):
        EventQueue().pop()


def test_remove_if_drops_matching_events_only():
    queue = EventQueue()
    queue.insert(_event(1.0, tag=SimTag.VM_DATACENTER_EVENT))
    queue.insert(_event(2.0, tag=SimTag.CLOUDLET_RETURN))
    queue.insert(_event(3.0, tag=SimTag.VM_DATACENTER_EVENT))

    removed = queue.remove_if(lambda event: event.tag is SimTag.VM_DATACENTER_EVENT)

    assert removed == 2
    assert [event.tag for event in queue] == [SimTag.CLOUDLET_RETURN]


def test_clear_resets_ordering():
    queue = EventQueue()
    queue.insert(_event(10.0))
    queue.clear()
    queue.insert(_event(2.0, "a"))
    queue.insert(_event(1.0, "b"))

    assert len(queue) == 2
    assert [event.data for event in queue] == ["b", "a"]


def test_inserts_between_pops_stay_ordered():
    queue = EventQueue()
    for time in [1.0, 2.0, 5.0]:
        queue.insert(_event(time, time))

    assert queue.pop().time == 1.0
    queue.insert(_event(3.0, 3.0))
    queue.insert(_event(2.0, "again"))
    queue.remove_if(lambda event: event.data == 5.0)
    queue.insert(_event(4.0, 4.0))

    assert [queue.pop().data for _ in range(len(queue))] == [2.0, "again", 3.0, 4.0]
