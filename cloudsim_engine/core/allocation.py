"""Datacenter-level policies choosing the host for each VM."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from loguru import logger

from .host import Host
from .resources import Vm, VmKey


class VmAllocationPolicy(ABC):
    """Places VMs on the hosts of one datacenter and remembers where they went."""

    def __init__(self, host_list: List[Host]):
        self.host_list = host_list
        self.vm_table: Dict[VmKey, Host] = {}
        self.used_pes: Dict[VmKey, int] = {}
        self.free_pes: Dict[int, int] = {host.host_id: host.number_of_pes for host in host_list}

    @abstractmethod
    def candidate_hosts(self, vm: Vm) -> List[Host]:
        """Hosts to try for ``vm``, in order of preference."""

    def allocate_host_for_vm(self, vm: Vm, host: Optional[Host] = None) -> bool:
        """Create ``vm`` on ``host`` or, if none is given, on the first candidate that fits."""
        if vm.key in self.vm_table:
            logger.warning(f"VM #{vm.vm_id} is already allocated on host #{self.vm_table[vm.key].host_id}")
            return False

        candidates = [host] if host is not None else self.candidate_hosts(vm)
        for candidate in candidates:
            if candidate.failed:
                continue
            if candidate.vm_create(vm):
                self.vm_table[vm.key] = candidate
                self.used_pes[vm.key] = vm.number_of_pes
                self.free_pes[candidate.host_id] -= vm.number_of_pes
                logger.debug(f"VM #{vm.vm_id} allocated on host #{candidate.host_id}")
                return True
        return False

    def deallocate_host_for_vm(self, vm: Vm) -> None:
        host = self.vm_table.pop(vm.key, None)
        if host is None:
            return
        pes = self.used_pes.pop(vm.key, 0)
        host.vm_destroy(vm)
        self.free_pes[host.host_id] += pes

    def get_host(self, vm_id: int, user_id: int) -> Optional[Host]:
        return self.vm_table.get(VmKey(user_id, vm_id))


class VmAllocationPolicySimple(VmAllocationPolicy):
    """Prefers the host with the most free PEs; ties go to the lower host id."""

    def candidate_hosts(self, vm: Vm) -> List[Host]:
        return sorted(
            self.host_list,
            key=lambda host: (-self.free_pes[host.host_id], host.host_id),
        )


class VmAllocationPolicyFirstFit(VmAllocationPolicy):
    """Tries hosts in id order."""

    def candidate_hosts(self, vm: Vm) -> List[Host]:
        # Sort hosts by ID for deterministic behavior
        return sorted(self.host_list, key=lambda host: host.host_id)


VM_ALLOCATION_POLICIES: Dict[str, Type[VmAllocationPolicy]] = {
    "simple": VmAllocationPolicySimple,
    "first_fit": VmAllocationPolicyFirstFit,
}


def create_allocation_policy(name: str, host_list: List[Host]) -> VmAllocationPolicy:
    """Create VM allocation policy instance."""
    if name not in VM_ALLOCATION_POLICIES:
        raise ValueError(f"Unknown VM allocation policy: {name}")
    return VM_ALLOCATION_POLICIES[name](host_list)
