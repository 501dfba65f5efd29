"""Core simulation components."""

from .simulation import Simulation, SimulationConfig
from .entity import SimEntity, EntityState
from .events import SimEvent, SimTag, EventQueue
from .errors import SimulationError, UnknownEntityError, MigrationAllocationError
from .resources import Pe, PeStatus, Vm, VmKey, Cloudlet, CloudletStatus
from .provisioners import (
    PeProvisioner,
    PeProvisionerSimple,
    ResourceProvisioner,
    RamProvisionerSimple,
    BwProvisionerSimple,
)
from .vm_scheduler import VmScheduler, VmSchedulerSpaceShared
from .cloudlet_scheduler import CloudletScheduler, CloudletSchedulerTimeShared
from .host import Host
from .allocation import (
    VmAllocationPolicy,
    VmAllocationPolicySimple,
    VmAllocationPolicyFirstFit,
)
from .datacenter import Datacenter, DatacenterCharacteristics

__all__ = [
    "Simulation",
    "SimulationConfig",
    "SimEntity",
    "EntityState",
    "SimEvent",
    "SimTag",
    "EventQueue",
    "SimulationError",
    "UnknownEntityError",
    "MigrationAllocationError",
    "Pe",
    "PeStatus",
    "Vm",
    "VmKey",
    "Cloudlet",
    "CloudletStatus",
    "PeProvisioner",
    "PeProvisionerSimple",
    "ResourceProvisioner",
    "RamProvisionerSimple",
    "BwProvisionerSimple",
    "VmScheduler",
    "VmSchedulerSpaceShared",
    "CloudletScheduler",
    "CloudletSchedulerTimeShared",
    "Host",
    "VmAllocationPolicy",
    "VmAllocationPolicySimple",
    "VmAllocationPolicyFirstFit",
    "Datacenter",
    "DatacenterCharacteristics",
]
