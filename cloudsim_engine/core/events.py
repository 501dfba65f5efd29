"""Simulation events, the tag vocabulary and the time-ordered event queue."""

from bisect import bisect_right
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from operator import attrgetter
from typing import Any, Callable, Deque, Iterator, Optional

from loguru import logger


class SimTag(IntEnum):
    """Event tags exchanged between entities."""

    END_OF_SIMULATION = -1

    # Resource discovery
    RESOURCE_CHARACTERISTICS = 6
    RESOURCE_CHARACTERISTICS_REQUEST = 15

    # Cloudlet events
    CLOUDLET_RETURN = 20
    CLOUDLET_SUBMIT = 21

    # VM events
    VM_CREATE = 32
    VM_CREATE_ACK = 33
    VM_DESTROY = 34
    VM_DESTROY_ACK = 35
    VM_MIGRATE = 36
    VM_MIGRATE_ACK = 37

    # Internal datacenter processing
    VM_DATACENTER_EVENT = 41


# Success flag carried in the third slot of a VM_CREATE_ACK payload
ACK_SUCCESS = 1
ACK_FAILURE = 0


@dataclass(frozen=True)
class SimEvent:
    """An event due at ``time``, sent from ``source`` to ``destination``."""

    time: float
    tag: SimTag
    source: int
    destination: int
    data: Any = None

    def __str__(self) -> str:
        return (
            f"SimEvent({self.tag.name}, t={self.time:.2f}, "
            f"{self.source} -> {self.destination})"
        )


_event_time = attrgetter("time")


class EventQueue:
    """Events ordered by due time; events with equal times keep insertion order.

    Popping the earliest event is O(1). Appending is O(1) whenever the new event
    is not earlier than every event already seen, which is the common case for a
    simulation clock moving forward.
    """

    def __init__(self) -> None:
        self._events: Deque[SimEvent] = deque()
        self.max_time: float = -1.0

    def insert(self, event: SimEvent) -> None:
        """Insert ``event`` after every queued event with the same or earlier time."""
        if event.time >= self.max_time:
            self._events.append(event)
            self.max_time = event.time
            return

        # First position whose time strictly exceeds the new event's
        index = bisect_right(self._events, event.time, key=_event_time)
        self._events.insert(index, event)

    def peek(self) -> Optional[SimEvent]:
        return self._events[0] if self._events else None

    def pop(self) -> SimEvent:
        """Remove and return the earliest event."""
        if not self._events:
            raise IndexError("pop from an empty event queue")
        return self._events.popleft()

    def remove_if(self, predicate: Callable[[SimEvent], bool]) -> int:
        """Drop every queued event matching ``predicate``; return how many were dropped."""
        kept = [event for event in self._events if not predicate(event)]
        removed = len(self._events) - len(kept)
        if removed:
            self._events = deque(kept)
            logger.debug(f"Removed {removed} queued event(s)")
        return removed

    def __iter__(self) -> Iterator[SimEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __bool__(self) -> bool:
        return bool(self._events)

    def size(self) -> int:
        return len(self._events)

    def clear(self) -> None:
        self._events.clear()
        self.max_time = -1.0
        logger.debug("Event queue cleared")
