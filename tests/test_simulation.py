"""Tests for the dispatch loop and entity lifecycle."""

import pytest

from cloudsim_engine.core.entity import EntityState
from cloudsim_engine.core.errors import UnknownEntityError
from cloudsim_engine.core.events import SimTag
from cloudsim_engine.core.simulation import Simulation, SimulationConfig


def test_entities_get_sequential_ids(recorder_cls):
    simulation = Simulation()
    first = recorder_cls("first")
    second = recorder_cls("second")

    assert simulation.add_entity(first) == 0
    assert simulation.add_entity(second) == 1
    assert simulation.get_entity_id("second") == 1
    assert simulation.get_entity_id("missing") == -1
    assert simulation.get_entity_name(0) == "first"


def test_duplicate_and_invalid_names_are_rejected(recorder_cls):
    simulation = Simulation()
    simulation.add_entity(recorder_cls("node"))

    with pytest.raises(ValueError):
        simulation.add_entity(recorder_cls("node"))
    with pytest.raises(ValueError):
        recorder_cls("has space")
    with pytest.raises(ValueError):
        recorder_cls("")


def test_send_validates_delay_and_destination(recorder_cls):
    simulation = Simulation()
    entity = recorder_cls("node")
    simulation.add_entity(entity)

    with pytest.raises(ValueError):
        simulation.send(entity.id, entity.id, -1.0, SimTag.CLOUDLET_SUBMIT)
    with pytest.raises(UnknownEntityError):
        simulation.send(entity.id, 99, 0.0, SimTag.CLOUDLET_SUBMIT)


def test_clock_follows_event_times(recorder_cls):
    def kick_off(entity):
        entity.send(entity.id, 2.5, SimTag.CLOUDLET_SUBMIT, "late")
        entity.send(entity.id, 1.0, SimTag.CLOUDLET_SUBMIT, "early")

    simulation = Simulation()
    entity = recorder_cls("node", on_start=kick_off)
    simulation.add_entity(entity)

    final_clock = simulation.run()

    assert [event.data for event in entity.received] == ["early", "late"]
    assert entity.receive_times == [1.0, 2.5]
    assert final_clock == 2.5
    assert entity.state is EntityState.FINISHED


def test_events_sent_between_entities_are_delivered(recorder_cls):
    simulation = Simulation()
    receiver = recorder_cls("receiver")
    simulation.add_entity(receiver)
    sender = recorder_cls(
        "sender",
        on_start=lambda entity: entity.send(receiver.id, 3.0, SimTag.VM_CREATE, "payload"),
    )
    simulation.add_entity(sender)

    simulation.run()

    assert len(receiver.received) == 1
    event = receiver.received[0]
    assert (event.source, event.destination, event.data) == (sender.id, receiver.id, "payload")
    assert sender.received == []


def test_end_of_simulation_finishes_the_entity(recorder_cls):
    def kick_off(entity):
        entity.send_now(entity.id, SimTag.END_OF_SIMULATION)
        entity.send(entity.id, 1.0, SimTag.CLOUDLET_SUBMIT, "dropped")

    simulation = Simulation()
    entity = recorder_cls("node", on_start=kick_off)
    simulation.add_entity(entity)
    simulation.run()

    assert entity.state is EntityState.FINISHED
    assert entity.received == []


def test_termination_time_stops_the_loop(recorder_cls):
    def kick_off(entity):
        for delay in (1.0, 5.0, 20.0):
            entity.send(entity.id, delay, SimTag.CLOUDLET_SUBMIT, delay)

    simulation = Simulation(SimulationConfig(termination_time=10.0))
    entity = recorder_cls("node", on_start=kick_off)
    simulation.add_entity(entity)

    assert simulation.run() == 10.0
    assert [event.data for event in entity.received] == [1.0, 5.0]


def test_cancel_events_only_touches_own_events(recorder_cls):
    simulation = Simulation()
    target = recorder_cls("target")
    simulation.add_entity(target)
    first = recorder_cls("first")
    second = recorder_cls("second")
    simulation.add_entity(first)
    simulation.add_entity(second)

    first.send(target.id, 1.0, SimTag.VM_DATACENTER_EVENT)
    second.send(target.id, 1.0, SimTag.VM_DATACENTER_EVENT)

    assert first.cancel_events(lambda event: event.tag is SimTag.VM_DATACENTER_EVENT) == 1
    assert [event.source for event in simulation.future] == [second.id]


def test_trace_records_dispatched_events(recorder_cls):
    simulation = Simulation(SimulationConfig(trace_events=True))
    entity = recorder_cls(
        "node", on_start=lambda e: e.send(e.id, 1.0, SimTag.CLOUDLET_RETURN)
    )
    simulation.add_entity(entity)
    simulation.run()

    assert [event.tag for event in simulation.event_log] == [SimTag.CLOUDLET_RETURN]
    assert simulation.events_processed == 1


def test_entities_cannot_be_added_while_running(recorder_cls):
    simulation = Simulation()
    late = recorder_cls("late")
    errors = []

    def add_during_run(entity):
        try:
            simulation.add_entity(late)
        except RuntimeError as e:
            errors.append(e)

    simulation.add_entity(recorder_cls("node", on_start=add_during_run))
    simulation.run()

    assert len(errors) == 1
