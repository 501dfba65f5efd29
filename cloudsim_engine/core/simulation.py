"""Simulation kernel: virtual clock, entity registry and the dispatch loop."""

from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass
import time
import numpy as np
from loguru import logger

from .entity import EntityState, SimEntity
from .errors import UnknownEntityError
from .events import EventQueue, SimEvent, SimTag


@dataclass
class SimulationConfig:
    """Configuration for simulation runs."""
    random_seed: int = 42
    termination_time: Optional[float] = None  # run until the queue drains
    min_time_between_events: float = 0.01
    trace_events: bool = False  # keep every dispatched event in ``event_log``


class Simulation:
    """Sequential discrete-event simulation.

    Events are dispatched one at a time in (time, insertion) order, so a run
    is fully reproducible from its inputs and random seed.
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()
        self.clock: float = 0.0
        self.random = np.random.default_rng(self.config.random_seed)

        self.entities: List[SimEntity] = []
        self._entities_by_name: Dict[str, SimEntity] = {}
        self._cloud_resource_ids: List[int] = []

        self.future = EventQueue()
        self.event_log: List[SimEvent] = []
        self.events_processed: int = 0
        self.running = False

        logger.info(f"Simulation initialized with seed {self.config.random_seed}")

    # Registry

    def add_entity(self, entity: SimEntity) -> int:
        """Register ``entity`` and return its id."""
        if self.running:
            raise RuntimeError("Entities can't be added while the simulation is running")
        if entity.name in self._entities_by_name:
            raise ValueError(f"Duplicate entity name: {entity.name}")

        entity_id = len(self.entities)
        entity.attach(self, entity_id)
        self.entities.append(entity)
        self._entities_by_name[entity.name] = entity
        logger.debug(f"Entity {entity.name} registered with id {entity_id}")
        return entity_id

    def get_entity(self, entity_id: int) -> SimEntity:
        if not 0 <= entity_id < len(self.entities):
            raise UnknownEntityError(entity_id)
        return self.entities[entity_id]

    def get_entity_name(self, entity_id: int) -> str:
        return self.get_entity(entity_id).name

    def get_entity_id(self, name: str) -> int:
        entity = self._entities_by_name.get(name)
        return entity.id if entity else -1

    def register_resource(self, entity_id: int) -> None:
        """Advertise a datacenter to brokers."""
        if entity_id not in self._cloud_resource_ids:
            self._cloud_resource_ids.append(entity_id)
            logger.info(f"{self.clock:.2f}: {self.get_entity_name(entity_id)} registered as cloud resource")

    def cloud_resource_ids(self) -> List[int]:
        return list(self._cloud_resource_ids)

    # Event primitives

    def send(self, source: int, destination: int, delay: float, tag: SimTag, data: Any = None) -> None:
        """Queue an event for ``destination`` due at ``clock + delay``."""
        if delay < 0:
            raise ValueError(f"Send delay can't be negative: {delay}")
        self.get_entity(destination)

        event = SimEvent(
            time=self.clock + delay,
            tag=tag,
            source=source,
            destination=destination,
            data=data,
        )
        self.future.insert(event)

    def cancel(self, predicate: Callable[[SimEvent], bool]) -> int:
        """Remove not-yet-due events matching ``predicate``."""
        return self.future.remove_if(predicate)

    # Dispatch loop

    def run(self) -> float:
        """Run until no event is left (or the termination time is reached).

        Returns the final clock.
        """
        logger.info("Starting simulation")
        start_time = time.time()

        self.running = True
        for entity in self.entities:
            entity.start()

        termination_time = self.config.termination_time
        while self.future:
            event = self.future.peek()
            if termination_time is not None and event.time > termination_time:
                self.clock = termination_time
                logger.info(f"{self.clock:.2f}: termination time reached")
                break

            self.future.pop()
            self.clock = event.time
            self._dispatch(event)

        self._finish()

        elapsed_time = time.time() - start_time
        logger.info(f"Simulation completed in {elapsed_time:.2f}s "
                    f"(simulated {self.clock:.2f}s, {self.events_processed} events)")
        return self.clock

    def _dispatch(self, event: SimEvent) -> None:
        entity = self.entities[event.destination]
        if entity.state is not EntityState.RUNNING:
            logger.debug(f"{self.clock:.2f}: {entity.name} is {entity.state.value}, dropping {event}")
            return

        if self.config.trace_events:
            self.event_log.append(event)
        self.events_processed += 1

        if event.tag is SimTag.END_OF_SIMULATION:
            entity.finish()
        else:
            entity.process_event(event)

    def _finish(self) -> None:
        for entity in self.entities:
            if entity.state is EntityState.RUNNING:
                entity.finish()
        self.running = False
