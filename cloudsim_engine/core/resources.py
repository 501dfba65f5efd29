"""Simulated resources: processing elements, VMs and cloudlets."""

from typing import TYPE_CHECKING, List, Optional
from dataclasses import dataclass
from enum import Enum
from loguru import logger

if TYPE_CHECKING:
    from .cloudlet_scheduler import CloudletScheduler
    from .provisioners import PeProvisioner


@dataclass(frozen=True, order=True)
class VmKey:
    """Identity of a VM across hosts, schedulers and provisioner ledgers."""
    user_id: int
    vm_id: int

    def __str__(self) -> str:
        return f"{self.user_id}-{self.vm_id}"


class PeStatus(Enum):
    """Processing element status, managed by the owning host."""
    FREE = "free"
    BUSY = "busy"
    FAILED = "failed"


class Pe:
    """One processing element (a core) of a host."""

    def __init__(self, pe_id: int, provisioner: "PeProvisioner"):
        self.pe_id = pe_id
        self.provisioner = provisioner
        self.status = PeStatus.FREE

    @property
    def mips(self) -> float:
        return self.provisioner.capacity

    def set_status_free(self) -> None:
        self.status = PeStatus.FREE

    def set_status_failed(self) -> None:
        self.status = PeStatus.FAILED

    def __repr__(self) -> str:
        return f"Pe(id={self.pe_id}, mips={self.mips}, status={self.status.value})"


class Vm:
    """A virtual machine requesting ``number_of_pes`` PEs of ``mips`` each."""

    def __init__(
        self,
        vm_id: int,
        user_id: int,
        mips: float,
        number_of_pes: int,
        ram: int,
        bw: int,
        size: int,
        cloudlet_scheduler: "CloudletScheduler",
        vmm: str = "Xen",
    ):
        if mips <= 0 or number_of_pes <= 0:
            raise ValueError(f"VM #{vm_id} needs positive MIPS and PE count")
        self.vm_id = vm_id
        self.user_id = user_id
        self.mips = mips
        self.number_of_pes = number_of_pes
        self.ram = ram
        self.bw = bw
        self.size = size
        self.vmm = vmm
        self.cloudlet_scheduler = cloudlet_scheduler

        # Lookup-only link to the current host; hosts own the allocations
        self.host_id: Optional[int] = None
        self.in_migration = False
        self.being_instantiated = True

        logger.debug(f"VM {self.key} created: {number_of_pes} x {mips} MIPS, "
                     f"{ram} RAM, {bw} BW, {size} storage")

    @property
    def key(self) -> VmKey:
        return VmKey(self.user_id, self.vm_id)

    @property
    def current_requested_mips(self) -> List[float]:
        return [self.mips] * self.number_of_pes

    @property
    def current_requested_total_mips(self) -> float:
        return sum(self.current_requested_mips)

    @property
    def current_requested_max_mips(self) -> float:
        return max(self.current_requested_mips)

    @property
    def current_requested_ram(self) -> int:
        return self.ram

    @property
    def current_requested_bw(self) -> int:
        return self.bw

    def update_processing(self, current_time: float, mips_share: Optional[List[float]]) -> float:
        """Advance hosted cloudlets; return the next time this VM needs attention."""
        if not mips_share:
            return 0.0
        return self.cloudlet_scheduler.update_processing(current_time, mips_share)

    def __repr__(self) -> str:
        return f"Vm(id={self.vm_id}, user={self.user_id}, host={self.host_id})"


class CloudletStatus(Enum):
    """Cloudlet lifecycle."""
    CREATED = "created"
    READY = "ready"
    INEXEC = "in_execution"
    SUCCESS = "success"
    FAILED = "failed"


class Cloudlet:
    """A unit of work of ``length`` million instructions per PE."""

    def __init__(
        self,
        cloudlet_id: int,
        user_id: int,
        length: float,
        number_of_pes: int = 1,
        file_size: int = 300,
        output_size: int = 300,
        vm_id: Optional[int] = None,
    ):
        if length <= 0 or number_of_pes <= 0:
            raise ValueError(f"Cloudlet #{cloudlet_id} needs positive length and PE count")
        self.cloudlet_id = cloudlet_id
        self.user_id = user_id
        self.length = length
        self.number_of_pes = number_of_pes
        self.file_size = file_size
        self.output_size = output_size
        self.vm_id = vm_id  # None means unbound

        self.status = CloudletStatus.CREATED
        self.datacenter_id: Optional[int] = None
        self.cost_per_sec: float = 0.0
        self.submission_time: Optional[float] = None
        self.exec_start_time: Optional[float] = None
        self.finish_time: Optional[float] = None

        # Instructions still to run, summed over all PEs
        self.remaining_length: float = length * number_of_pes

    @property
    def total_length(self) -> float:
        return self.length * self.number_of_pes

    @property
    def is_finished(self) -> bool:
        return self.status in (CloudletStatus.SUCCESS, CloudletStatus.FAILED)

    @property
    def actual_cpu_time(self) -> float:
        if self.exec_start_time is None or self.finish_time is None:
            return 0.0
        return self.finish_time - self.exec_start_time

    @property
    def processing_cost(self) -> float:
        return self.actual_cpu_time * self.cost_per_sec

    def set_resource(self, datacenter_id: int, cost_per_sec: float, submission_time: float) -> None:
        self.datacenter_id = datacenter_id
        self.cost_per_sec = cost_per_sec
        self.submission_time = submission_time
        self.status = CloudletStatus.READY

    def __repr__(self) -> str:
        return f"Cloudlet(id={self.cloudlet_id}, vm={self.vm_id}, status={self.status.value})"
