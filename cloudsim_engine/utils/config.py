"""Configuration management and scenario construction."""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass
from pathlib import Path
import yaml
import json
import numpy as np
from pydantic import BaseModel, ConfigDict, Field
from loguru import logger

from ..core.allocation import create_allocation_policy
from ..core.cloudlet_scheduler import CloudletSchedulerTimeShared
from ..core.datacenter import Datacenter, DatacenterCharacteristics
from ..core.host import Host
from ..core.provisioners import (
    BW_PROVISIONERS,
    PE_PROVISIONERS,
    RAM_PROVISIONERS,
    create_provisioner,
)
from ..core.resources import Cloudlet, Pe, Vm
from ..core.simulation import Simulation, SimulationConfig
from ..core.vm_scheduler import create_vm_scheduler
from ..scheduling.broker import DatacenterBroker


class HostConfig(BaseModel):
    """A group of identical hosts."""
    model_config = ConfigDict(extra="forbid")

    count: int = Field(1, ge=1)
    pes: int = Field(4, ge=1)
    mips_per_pe: float = Field(1000.0, gt=0)
    ram: int = Field(16384, gt=0)
    bw: int = Field(10000, gt=0)
    storage: int = Field(1_000_000, ge=0)
    vm_scheduler: str = "space_shared"
    pe_provisioner: str = "simple"
    ram_provisioner: str = "simple"
    bw_provisioner: str = "simple"


class DatacenterConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    hosts: List[HostConfig] = Field(default_factory=lambda: [HostConfig()])
    allocation_policy: str = "simple"
    architecture: str = "x86"
    os: str = "Linux"
    vmm: str = "Xen"
    time_zone: float = 10.0
    cost_per_sec: float = 3.0
    cost_per_mem: float = 0.05
    cost_per_storage: float = 0.001
    cost_per_bw: float = 0.0
    scheduling_interval: float = 0.0


class VmConfig(BaseModel):
    """A group of identical VMs."""
    model_config = ConfigDict(extra="forbid")

    count: int = Field(1, ge=1)
    mips: float = Field(1000.0, gt=0)
    pes: int = Field(1, ge=1)
    ram: int = Field(512, gt=0)
    bw: int = Field(1000, gt=0)
    size: int = Field(10000, ge=0)
    vmm: str = "Xen"


class CloudletConfig(BaseModel):
    """A group of cloudlets; lengths are jittered when ``length_std`` is positive."""
    model_config = ConfigDict(extra="forbid")

    count: int = Field(1, ge=1)
    length: float = Field(40000.0, gt=0)
    length_std: float = Field(0.0, ge=0)
    pes: int = Field(1, ge=1)
    file_size: int = 300
    output_size: int = 300
    vm_id: Optional[int] = None


class BrokerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = "Broker"
    vms: List[VmConfig] = Field(default_factory=list)
    cloudlets: List[CloudletConfig] = Field(default_factory=list)


class ScenarioConfig(BaseModel):
    """Main configuration class."""
    model_config = ConfigDict(extra="forbid")

    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    datacenters: List[DatacenterConfig] = Field(default_factory=list)
    broker: BrokerConfig = Field(default_factory=BrokerConfig)

    # Experiment metadata, copied into results as-is
    experiment: Dict[str, Any] = Field(default_factory=dict)


@dataclass
class Scenario:
    """Everything wired together and ready to ``run``."""
    simulation: Simulation
    datacenters: List[Datacenter]
    broker: DatacenterBroker
    vms: List[Vm]
    cloudlets: List[Cloudlet]

    @property
    def hosts(self) -> List[Host]:
        return [host for datacenter in self.datacenters for host in datacenter.host_list]

    def run(self) -> float:
        return self.simulation.run()


def _read_file(config_path: Path) -> Dict[str, Any]:
    with open(config_path, 'r') as f:
        if config_path.suffix.lower() in ['.yaml', '.yml']:
            return yaml.safe_load(f) or {}
        elif config_path.suffix.lower() == '.json':
            return json.load(f)
        raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")


def load_config(config_path: Path) -> ScenarioConfig:
    """Load configuration from file."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")
    config = ScenarioConfig.model_validate(_read_file(config_path))

    logger.info(f"Configuration loaded: {len(config.datacenters)} datacenter(s), "
                f"seed {config.simulation.random_seed}")
    return config


def save_config(config: ScenarioConfig, config_path: Path) -> None:
    """Save configuration to file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_dict = config.model_dump(mode="json")

    with open(config_path, 'w') as f:
        if config_path.suffix.lower() in ['.yaml', '.yml']:
            yaml.dump(config_dict, f, default_flow_style=False, indent=2, sort_keys=False)
        elif config_path.suffix.lower() == '.json':
            json.dump(config_dict, f, indent=2)
        else:
            raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    logger.info(f"Configuration saved to {config_path}")


def save_results(analysis: Dict[str, Any], output_dir: Path) -> None:
    """Save simulation results to files."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    analysis = dict(analysis)
    cloudlets = analysis.pop('cloudlets', None)

    results_file = output_dir / "simulation_results.json"
    with open(results_file, 'w') as f:
        json.dump(analysis, f, indent=2, default=str)
    logger.info(f"Results saved to {results_file}")

    if cloudlets is not None:
        cloudlets_file = output_dir / "cloudlets.csv"
        cloudlets.to_csv(cloudlets_file, index=False)
        logger.info(f"Cloudlet table saved to {cloudlets_file}")


def default_config() -> ScenarioConfig:
    """Two datacenters, six VMs and twelve cloudlets."""
    return ScenarioConfig(
        simulation=SimulationConfig(random_seed=42),
        datacenters=[
            DatacenterConfig(name="Datacenter_0", hosts=[HostConfig(count=2, pes=4)]),
            DatacenterConfig(name="Datacenter_1", hosts=[HostConfig(count=1, pes=2, mips_per_pe=2000.0)]),
        ],
        broker=BrokerConfig(
            name="Broker",
            vms=[VmConfig(count=4, mips=1000.0, pes=2), VmConfig(count=2, mips=1000.0, pes=1)],
            cloudlets=[CloudletConfig(count=12, length=40000.0, length_std=5000.0)],
        ),
        experiment={
            'name': 'default',
            'description': 'Space-shared hosts with round-robin cloudlet placement',
        },
    )


def _build_host(host_id: int, config: HostConfig) -> Host:
    pe_list = [
        Pe(pe_id, create_provisioner(PE_PROVISIONERS, config.pe_provisioner, config.mips_per_pe))
        for pe_id in range(config.pes)
    ]
    return Host(
        host_id=host_id,
        ram_provisioner=create_provisioner(RAM_PROVISIONERS, config.ram_provisioner, config.ram),
        bw_provisioner=create_provisioner(BW_PROVISIONERS, config.bw_provisioner, config.bw),
        storage=config.storage,
        pe_list=pe_list,
        vm_scheduler=create_vm_scheduler(config.vm_scheduler, pe_list),
    )


def build_datacenter(config: DatacenterConfig, first_host_id: int = 0) -> Datacenter:
    """Create a datacenter with its hosts; host ids start at ``first_host_id``."""
    hosts = []
    for group in config.hosts:
        for _ in range(group.count):
            hosts.append(_build_host(first_host_id + len(hosts), group))

    characteristics = DatacenterCharacteristics(
        architecture=config.architecture,
        os=config.os,
        vmm=config.vmm,
        host_list=hosts,
        time_zone=config.time_zone,
        cost_per_sec=config.cost_per_sec,
        cost_per_mem=config.cost_per_mem,
        cost_per_storage=config.cost_per_storage,
        cost_per_bw=config.cost_per_bw,
    )
    return Datacenter(
        name=config.name,
        characteristics=characteristics,
        allocation_policy=create_allocation_policy(config.allocation_policy, hosts),
        scheduling_interval=config.scheduling_interval,
    )


def build_simulation(config: ScenarioConfig) -> Scenario:
    """Wire datacenters, broker, VMs and cloudlets into a fresh simulation."""
    simulation = Simulation(config.simulation)

    datacenters = []
    next_host_id = 0
    for dc_config in config.datacenters:
        datacenter = build_datacenter(dc_config, first_host_id=next_host_id)
        next_host_id += len(datacenter.host_list)
        simulation.add_entity(datacenter)
        datacenters.append(datacenter)

    broker = DatacenterBroker(config.broker.name)
    simulation.add_entity(broker)
    min_gap = config.simulation.min_time_between_events

    vms = []
    for group in config.broker.vms:
        for _ in range(group.count):
            vms.append(Vm(
                vm_id=len(vms),
                user_id=broker.id,
                mips=group.mips,
                number_of_pes=group.pes,
                ram=group.ram,
                bw=group.bw,
                size=group.size,
                cloudlet_scheduler=CloudletSchedulerTimeShared(min_gap),
                vmm=group.vmm,
            ))

    cloudlets = []
    for group in config.broker.cloudlets:
        lengths = np.full(group.count, group.length)
        if group.length_std > 0:
            lengths = simulation.random.normal(group.length, group.length_std, group.count)
            lengths = np.maximum(lengths, 1.0)
        for length in lengths:
            cloudlets.append(Cloudlet(
                cloudlet_id=len(cloudlets),
                user_id=broker.id,
                length=float(length),
                number_of_pes=group.pes,
                file_size=group.file_size,
                output_size=group.output_size,
                vm_id=group.vm_id,
            ))

    broker.submit_vm_list(vms)
    broker.submit_cloudlet_list(cloudlets)

    logger.info(f"Scenario built: {len(datacenters)} datacenter(s), {next_host_id} host(s), "
                f"{len(vms)} VM(s), {len(cloudlets)} cloudlet(s)")
    return Scenario(simulation, datacenters, broker, vms, cloudlets)

