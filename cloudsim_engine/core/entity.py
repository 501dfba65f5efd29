"""Base class for simulation entities."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

from loguru import logger

from .events import SimEvent, SimTag

if TYPE_CHECKING:
    from .simulation import Simulation


class EntityState(Enum):
    """Entity lifecycle states."""
    CREATED = "created"
    RUNNING = "running"
    FINISHED = "finished"


class SimEntity(ABC):
    """An actor in the simulation.

    Entities never block: to wait, an entity schedules an event to itself and
    returns from its handler. Only the dispatch loop calls ``start``,
    ``process_event`` and ``finish``.
    """

    def __init__(self, name: str):
        if not name or " " in name:
            raise ValueError(f"Entity name must be non-empty and contain no spaces: {name!r}")
        self.name = name
        self.id: int = -1
        self.state = EntityState.CREATED
        self.simulation: Optional["Simulation"] = None

    def attach(self, simulation: "Simulation", entity_id: int) -> None:
        """Bind the entity to a simulation under ``entity_id``."""
        self.simulation = simulation
        self.id = entity_id

    @property
    def clock(self) -> float:
        return self.simulation.clock if self.simulation else 0.0

    def start(self) -> None:
        self.state = EntityState.RUNNING
        self.start_entity()

    def finish(self) -> None:
        if self.state is EntityState.FINISHED:
            return
        self.shutdown_entity()
        self.state = EntityState.FINISHED

    @abstractmethod
    def start_entity(self) -> None:
        """Called once before the first event is dispatched."""

    @abstractmethod
    def process_event(self, event: SimEvent) -> None:
        """Handle one event addressed to this entity."""

    def shutdown_entity(self) -> None:
        logger.info(f"{self.clock:.2f}: {self.name} is shutting down...")

    def process_other_event(self, event: SimEvent) -> None:
        """Unknown tags are logged and dropped."""
        logger.warning(
            f"{self.clock:.2f}: {self.name}: dropping event with unknown tag {event.tag!r}"
        )

    # Sending

    def send(self, destination: int, delay: float, tag: SimTag, data: Any = None) -> None:
        self.simulation.send(self.id, destination, delay, tag, data)

    def send_now(self, destination: int, tag: SimTag, data: Any = None) -> None:
        self.send(destination, 0.0, tag, data)

    def cancel_events(self, predicate: Callable[[SimEvent], bool]) -> int:
        """Cancel this entity's own not-yet-due events that match ``predicate``."""
        return self.simulation.cancel(
            lambda event: event.source == self.id and predicate(event)
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id}, name={self.name!r})"
