"""Physical host: PEs, a VM scheduler and RAM/bandwidth provisioners."""

import math
from typing import List, Optional

from loguru import logger

from .errors import MigrationAllocationError
from .provisioners import ResourceProvisioner
from .resources import Pe, PeStatus, Vm
from .vm_scheduler import VmScheduler


class Host:
    """A physical machine hosting VMs.

    Creating a VM reserves storage, RAM, bandwidth and PEs as one transaction:
    either all four are granted or the host is left untouched.
    """

    def __init__(
        self,
        host_id: int,
        ram_provisioner: ResourceProvisioner,
        bw_provisioner: ResourceProvisioner,
        storage: int,
        pe_list: List[Pe],
        vm_scheduler: VmScheduler,
    ):
        if storage < 0:
            raise ValueError(f"Host #{host_id} storage can't be negative")
        self.host_id = host_id
        self.ram_provisioner = ram_provisioner
        self.bw_provisioner = bw_provisioner
        self.storage = storage
        self.pe_list = pe_list
        self.vm_scheduler = vm_scheduler
        self.datacenter_id: Optional[int] = None

        self.vm_list: List[Vm] = []
        self.vms_migrating_in: List[Vm] = []
        self.failed = False

        logger.info(f"Host {host_id} created with {len(pe_list)} PEs, "
                    f"{ram_provisioner.capacity} RAM, {bw_provisioner.capacity} BW")

    def update_vms_processing(self, current_time: float) -> float:
        """Advance every resident VM; return the earliest next event time or ``math.inf``."""
        smaller_time = math.inf
        for vm in self.vm_list:
            next_time = vm.update_processing(
                current_time, self.vm_scheduler.get_allocated_mips_for_vm(vm)
            )
            if 0.0 < next_time < smaller_time:
                smaller_time = next_time
        return smaller_time

    def is_suitable_for_vm(self, vm: Vm) -> bool:
        return (
            self.vm_scheduler.pe_capacity >= vm.current_requested_max_mips
            and self.vm_scheduler.available_mips >= vm.current_requested_total_mips
            and self.ram_provisioner.is_suitable(vm.key, vm.current_requested_ram)
            and self.bw_provisioner.is_suitable(vm.key, vm.current_requested_bw)
        )

    def vm_create(self, vm: Vm) -> bool:
        """Place ``vm`` here, returning False if any resource is short."""
        if vm in self.vm_list or vm in self.vms_migrating_in:
            logger.warning(f"[Host.vm_create] VM #{vm.vm_id} already holds resources on "
                           f"Host #{self.host_id}")
            return False

        if self.storage < vm.size:
            logger.info(f"[Host.vm_create] Allocation of VM #{vm.vm_id} to Host #{self.host_id} "
                        f"failed by storage")
            return False

        if not self.ram_provisioner.allocate(vm.key, vm.current_requested_ram):
            logger.info(f"[Host.vm_create] Allocation of VM #{vm.vm_id} to Host #{self.host_id} "
                        f"failed by RAM")
            return False

        if not self.bw_provisioner.allocate(vm.key, vm.current_requested_bw):
            logger.info(f"[Host.vm_create] Allocation of VM #{vm.vm_id} to Host #{self.host_id} "
                        f"failed by BW")
            self.ram_provisioner.deallocate(vm.key)
            return False

        if not self.vm_scheduler.allocate_pes_for_vm(vm, vm.current_requested_mips):
            logger.info(f"[Host.vm_create] Allocation of VM #{vm.vm_id} to Host #{self.host_id} "
                        f"failed by MIPS")
            self.ram_provisioner.deallocate(vm.key)
            self.bw_provisioner.deallocate(vm.key)
            return False

        self.storage -= vm.size
        self.vm_list.append(vm)
        vm.host_id = self.host_id
        return True

    def vm_destroy(self, vm: Optional[Vm]) -> None:
        if vm is None or vm not in self.vm_list:
            return
        self._vm_deallocate(vm)
        self.vm_list.remove(vm)
        vm.host_id = None

    def vm_destroy_all(self) -> None:
        self._vm_deallocate_all()
        for vm in self.vm_list:
            vm.host_id = None
            self.storage += vm.size
        self.vm_list.clear()

    def _vm_deallocate(self, vm: Vm) -> None:
        self.ram_provisioner.deallocate(vm.key)
        self.bw_provisioner.deallocate(vm.key)
        self.vm_scheduler.deallocate_pes_for_vm(vm)
        self.storage += vm.size

    def _vm_deallocate_all(self) -> None:
        self.ram_provisioner.deallocate_all()
        self.bw_provisioner.deallocate_all()
        self.vm_scheduler.deallocate_pes_for_all_vms()

    # Migration

    def add_migrating_in_vm(self, vm: Vm) -> None:
        """Reserve capacity for ``vm`` while it migrates to this host.

        The VM stays resident on its source host until the migration completes.
        Raises :class:`MigrationAllocationError` if any resource is short; the
        partial reservation is released first.
        """
        if vm in self.vms_migrating_in:
            return
        if vm in self.vm_list:
            logger.error(f"[Host.add_migrating_in_vm] VM #{vm.vm_id} is already resident on "
                         f"Host #{self.host_id}")
            raise MigrationAllocationError(vm.key, self.host_id, "residency")
        vm.in_migration = True

        if self.storage < vm.size:
            self._abort_migration(vm, "storage")

        if not self.ram_provisioner.allocate(vm.key, vm.current_requested_ram):
            self._abort_migration(vm, "RAM")

        if not self.bw_provisioner.allocate(vm.key, vm.current_requested_bw):
            self.ram_provisioner.deallocate(vm.key)
            self._abort_migration(vm, "BW")

        self.vm_scheduler.vms_migrating_in.add(vm.key)
        if not self.vm_scheduler.allocate_pes_for_vm(vm, vm.current_requested_mips):
            self.vm_scheduler.vms_migrating_in.discard(vm.key)
            self.ram_provisioner.deallocate(vm.key)
            self.bw_provisioner.deallocate(vm.key)
            self._abort_migration(vm, "MIPS")

        self.storage -= vm.size
        self.vms_migrating_in.append(vm)
        logger.info(f"VM #{vm.vm_id} reserved on Host #{self.host_id} for migration")

    def _abort_migration(self, vm: Vm, resource: str) -> None:
        vm.in_migration = False
        logger.error(f"[Host.add_migrating_in_vm] Allocation of VM #{vm.vm_id} to Host "
                     f"#{self.host_id} failed by {resource}")
        raise MigrationAllocationError(vm.key, self.host_id, resource)

    def remove_migrating_in_vm(self, vm: Vm) -> None:
        """Release the migration reservation held for ``vm``."""
        if vm not in self.vms_migrating_in:
            return
        self._vm_deallocate(vm)
        self.vms_migrating_in.remove(vm)
        self.vm_scheduler.vms_migrating_in.discard(vm.key)
        vm.in_migration = False

    def reallocate_migrating_in_vms(self) -> None:
        """Re-reserve capacity for in-flight migrations after the ledgers were reset."""
        for vm in self.vms_migrating_in:
            self.vm_scheduler.vms_migrating_in.add(vm.key)
            self.ram_provisioner.allocate(vm.key, vm.current_requested_ram)
            self.bw_provisioner.allocate(vm.key, vm.current_requested_bw)
            self.vm_scheduler.allocate_pes_for_vm(vm, vm.current_requested_mips)
            self.storage -= vm.size

    # Queries

    def get_vm(self, vm_id: int, user_id: int) -> Optional[Vm]:
        for vm in self.vm_list:
            if vm.vm_id == vm_id and vm.user_id == user_id:
                return vm
        return None

    @property
    def number_of_pes(self) -> int:
        return len(self.pe_list)

    @property
    def number_of_free_pes(self) -> int:
        return sum(1 for pe in self.pe_list if pe.status is PeStatus.FREE)

    @property
    def total_mips(self) -> float:
        return sum(pe.mips for pe in self.pe_list)

    @property
    def available_mips(self) -> float:
        return self.vm_scheduler.available_mips

    @property
    def max_available_mips(self) -> float:
        return self.vm_scheduler.max_available_mips

    @property
    def ram(self) -> float:
        return self.ram_provisioner.capacity

    @property
    def bw(self) -> float:
        return self.bw_provisioner.capacity

    def get_allocated_mips_for_vm(self, vm: Vm) -> Optional[List[float]]:
        return self.vm_scheduler.get_allocated_mips_for_vm(vm)

    def get_total_allocated_mips_for_vm(self, vm: Vm) -> float:
        return self.vm_scheduler.get_total_allocated_mips_for_vm(vm)

    # Failures

    def set_failed(self, failed: bool) -> None:
        """Mark the host and all of its PEs failed (or recovered). VMs stay put."""
        self.failed = failed
        for pe in self.pe_list:
            if failed:
                pe.set_status_failed()
            else:
                pe.set_status_free()
        if failed:
            logger.warning(f"Host {self.host_id} failed")
        else:
            logger.info(f"Host {self.host_id} recovered")

    def set_pe_status(self, pe_id: int, status: PeStatus) -> bool:
        for pe in self.pe_list:
            if pe.pe_id == pe_id:
                pe.status = status
                return True
        return False
