"""Policies mapping the MIPS requested by VMs onto a host's PEs."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Set, Type

from loguru import logger

from .resources import Pe, Vm, VmKey


class VmScheduler(ABC):
    """Tracks which PEs and MIPS shares each VM holds on one host."""

    def __init__(self, pe_list: List[Pe]):
        self.pe_list = pe_list
        self.pe_map: Dict[VmKey, List[Pe]] = {}
        self.mips_map: Dict[VmKey, List[float]] = {}
        self.available_mips: float = self.total_mips
        self.vms_migrating_in: Set[VmKey] = set()
        self.vms_migrating_out: Set[VmKey] = set()

    @abstractmethod
    def allocate_pes_for_vm(self, vm: Vm, mips_share: Sequence[float]) -> bool:
        """Grant ``mips_share`` (one entry per virtual PE) to ``vm``."""

    @abstractmethod
    def deallocate_pes_for_vm(self, vm: Vm) -> None:
        """Release everything granted to ``vm``."""

    def deallocate_pes_for_all_vms(self) -> None:
        self.pe_map.clear()
        self.mips_map.clear()
        self.available_mips = self.total_mips
        for pe in self.pe_list:
            pe.provisioner.deallocate_all()

    @property
    def total_mips(self) -> float:
        return sum(pe.mips for pe in self.pe_list)

    def get_pes_allocated_for_vm(self, vm: Vm) -> Optional[List[Pe]]:
        return self.pe_map.get(vm.key)

    def get_allocated_mips_for_vm(self, vm: Vm) -> Optional[List[float]]:
        return self.mips_map.get(vm.key)

    def get_total_allocated_mips_for_vm(self, vm: Vm) -> float:
        return sum(self.mips_map.get(vm.key, ()))

    @property
    def max_available_mips(self) -> float:
        """Largest MIPS still free on a single PE."""
        if not self.pe_list:
            logger.warning("Pe list is empty")
            return 0.0
        return max(pe.provisioner.available for pe in self.pe_list)

    @property
    def pe_capacity(self) -> float:
        """Rated MIPS of one PE; PEs of a host are homogeneous."""
        if not self.pe_list:
            logger.warning("Pe list is empty")
            return 0.0
        return self.pe_list[0].mips


class VmSchedulerSpaceShared(VmScheduler):
    """Each virtual PE gets a whole physical PE to itself."""

    def __init__(self, pe_list: List[Pe]):
        super().__init__(pe_list)
        self.free_pes: List[Pe] = list(pe_list)

    def allocate_pes_for_vm(self, vm: Vm, mips_share: Sequence[float]) -> bool:
        if len(self.free_pes) < len(mips_share):
            return False

        # One pass over the free pool; a PE skipped for a share is not revisited
        selected: List[Pe] = []
        free_pes = iter(self.free_pes)
        for mips in mips_share:
            for pe in free_pes:
                if pe.mips >= mips:
                    selected.append(pe)
                    break
            else:
                return False

        for pe, mips in zip(selected, mips_share):
            pe.provisioner.allocate(vm.key, mips)
        self.free_pes = [pe for pe in self.free_pes if pe not in selected]
        self.pe_map[vm.key] = selected
        self.mips_map[vm.key] = list(mips_share)
        self.available_mips -= sum(mips_share)
        return True

    def deallocate_pes_for_vm(self, vm: Vm) -> None:
        released = self.pe_map.pop(vm.key, None)
        if released is None:
            return
        for pe in released:
            pe.provisioner.deallocate(vm.key)

        # Freed PEs go back in host order so later walks stay deterministic
        free = self.free_pes + released
        self.free_pes = [pe for pe in self.pe_list if pe in free]
        self.available_mips += sum(self.mips_map.pop(vm.key, ()))

    def deallocate_pes_for_all_vms(self) -> None:
        super().deallocate_pes_for_all_vms()
        self.free_pes = list(self.pe_list)


VM_SCHEDULERS: Dict[str, Type[VmScheduler]] = {
    "space_shared": VmSchedulerSpaceShared,
}


def create_vm_scheduler(name: str, pe_list: List[Pe]) -> VmScheduler:
    """Instantiate the VM scheduler variant registered as ``name``."""
    if name not in VM_SCHEDULERS:
        raise ValueError(f"Unknown VM scheduler type: {name}")
    return VM_SCHEDULERS[name](pe_list)
