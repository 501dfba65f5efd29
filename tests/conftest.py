"""Shared fixtures for the simulator tests."""

from typing import Callable, List, Optional, Sequence

import pytest

from cloudsim_engine.core.allocation import create_allocation_policy
from cloudsim_engine.core.cloudlet_scheduler import CloudletSchedulerTimeShared
from cloudsim_engine.core.datacenter import Datacenter, DatacenterCharacteristics
from cloudsim_engine.core.entity import SimEntity
from cloudsim_engine.core.events import SimEvent
from cloudsim_engine.core.host import Host
from cloudsim_engine.core.provisioners import (
    BwProvisionerSimple,
    PeProvisionerSimple,
    RamProvisionerSimple,
)
from cloudsim_engine.core.resources import Cloudlet, Pe, Vm
from cloudsim_engine.core.simulation import Simulation, SimulationConfig
from cloudsim_engine.core.vm_scheduler import VmSchedulerSpaceShared
from cloudsim_engine.scheduling.broker import DatacenterBroker


class Recorder(SimEntity):
    """Entity that remembers every event it receives."""

    def __init__(self, name: str, on_start: Optional[Callable[["Recorder"], None]] = None):
        super().__init__(name)
        self.on_start = on_start
        self.received: List[SimEvent] = []
        self.receive_times: List[float] = []

    def start_entity(self) -> None:
        if self.on_start:
            self.on_start(self)

    def process_event(self, event: SimEvent) -> None:
        self.received.append(event)
        self.receive_times.append(self.clock)


def build_host(
    host_id: int = 0,
    pe_mips: Sequence[float] = (1000.0, 1000.0),
    ram: int = 2048,
    bw: int = 10000,
    storage: int = 1_000_000,
) -> Host:
    pe_list = [Pe(i, PeProvisionerSimple(mips)) for i, mips in enumerate(pe_mips)]
    return Host(
        host_id=host_id,
        ram_provisioner=RamProvisionerSimple(ram),
        bw_provisioner=BwProvisionerSimple(bw),
        storage=storage,
        pe_list=pe_list,
        vm_scheduler=VmSchedulerSpaceShared(pe_list),
    )


def build_vm(
    vm_id: int = 0,
    user_id: int = 0,
    mips: float = 500.0,
    pes: int = 1,
    ram: int = 512,
    bw: int = 1000,
    size: int = 1000,
) -> Vm:
    return Vm(
        vm_id=vm_id,
        user_id=user_id,
        mips=mips,
        number_of_pes=pes,
        ram=ram,
        bw=bw,
        size=size,
        cloudlet_scheduler=CloudletSchedulerTimeShared(),
    )


def build_datacenter(name: str, hosts: List[Host], policy: str = "simple") -> Datacenter:
    characteristics = DatacenterCharacteristics(
        architecture="x86", os="Linux", vmm="Xen", host_list=hosts
    )
    return Datacenter(name, characteristics, create_allocation_policy(policy, hosts))


@pytest.fixture
def make_host():
    return build_host


@pytest.fixture
def make_vm():
    return build_vm


@pytest.fixture
def make_datacenter():
    return build_datacenter


@pytest.fixture
def recorder_cls():
    return Recorder


@pytest.fixture
def traced_simulation() -> Simulation:
    return Simulation(SimulationConfig(random_seed=7, trace_events=True))


@pytest.fixture
def single_datacenter_run(traced_simulation):
    """Factory: one datacenter, a broker, ``vm_count`` VMs and unbound cloudlets."""

    def _run(vm_count: int, cloudlet_lengths: Sequence[float], hosts: int = 2, pes_per_host: int = 4):
        simulation = traced_simulation
        host_list = [build_host(i, pe_mips=[1000.0] * pes_per_host, ram=8192) for i in range(hosts)]
        datacenter = build_datacenter("Datacenter_0", host_list)
        simulation.add_entity(datacenter)

        broker = DatacenterBroker("Broker")
        simulation.add_entity(broker)
        vms = [build_vm(i, user_id=broker.id, mips=1000.0) for i in range(vm_count)]
        cloudlets = [
            Cloudlet(i, user_id=broker.id, length=length)
            for i, length in enumerate(cloudlet_lengths)
        ]
        broker.submit_vm_list(vms)
        broker.submit_cloudlet_list(cloudlets)

        simulation.run()
        return simulation, datacenter, broker, vms, cloudlets

    return _run
