"""Datacenter entity: answers brokers and drives its hosts."""

import math
from dataclasses import dataclass
from typing import List

from loguru import logger

from .allocation import VmAllocationPolicy
from .entity import SimEntity
from .errors import MigrationAllocationError
from .events import ACK_FAILURE, ACK_SUCCESS, SimEvent, SimTag
from .host import Host
from .resources import Cloudlet, CloudletStatus, Vm


@dataclass
class DatacenterCharacteristics:
    """Static description of a datacenter, sent to brokers on request."""
    architecture: str
    os: str
    vmm: str
    host_list: List[Host]
    time_zone: float = 0.0
    cost_per_sec: float = 3.0
    cost_per_mem: float = 0.05
    cost_per_storage: float = 0.001
    cost_per_bw: float = 0.0
    id: int = -1

    @property
    def number_of_pes(self) -> int:
        return sum(host.number_of_pes for host in self.host_list)

    @property
    def number_of_free_pes(self) -> int:
        return sum(host.number_of_free_pes for host in self.host_list)

    @property
    def mips_of_one_pe(self) -> float:
        return self.host_list[0].pe_list[0].mips if self.host_list else 0.0


class Datacenter(SimEntity):
    """Owns a set of hosts and executes the VMs and cloudlets sent by brokers."""

    def __init__(
        self,
        name: str,
        characteristics: DatacenterCharacteristics,
        allocation_policy: VmAllocationPolicy,
        scheduling_interval: float = 0.0,
    ):
        super().__init__(name)
        if not characteristics.host_list:
            raise ValueError(f"{name}: a datacenter needs at least one host")
        self.characteristics = characteristics
        self.allocation_policy = allocation_policy
        self.scheduling_interval = scheduling_interval
        self.vm_list: List[Vm] = []

    def attach(self, simulation, entity_id: int) -> None:
        super().attach(simulation, entity_id)
        self.characteristics.id = entity_id
        for host in self.characteristics.host_list:
            host.datacenter_id = entity_id

    @property
    def host_list(self) -> List[Host]:
        return self.characteristics.host_list

    def start_entity(self) -> None:
        logger.info(f"{self.name} is starting...")
        self.simulation.register_resource(self.id)

    def process_event(self, event: SimEvent) -> None:
        tag = event.tag
        if tag is SimTag.RESOURCE_CHARACTERISTICS:
            self.send_now(event.data, SimTag.RESOURCE_CHARACTERISTICS, self.characteristics)
        elif tag is SimTag.VM_CREATE:
            self._process_vm_create(event, ack=False)
        elif tag is SimTag.VM_CREATE_ACK:
            self._process_vm_create(event, ack=True)
        elif tag is SimTag.VM_DESTROY:
            self._process_vm_destroy(event, ack=False)
        elif tag is SimTag.VM_DESTROY_ACK:
            self._process_vm_destroy(event, ack=True)
        elif tag is SimTag.VM_MIGRATE:
            self._process_vm_migrate(event, ack=False)
        elif tag is SimTag.VM_MIGRATE_ACK:
            self._process_vm_migrate(event, ack=True)
        elif tag is SimTag.CLOUDLET_SUBMIT:
            self._process_cloudlet_submit(event)
        elif tag is SimTag.VM_DATACENTER_EVENT:
            self._update_cloudlet_processing()
        else:
            self.process_other_event(event)

    # VM lifecycle

    def _process_vm_create(self, event: SimEvent, ack: bool) -> None:
        vm: Vm = event.data
        result = self.allocation_policy.allocate_host_for_vm(vm)

        if ack:
            flag = ACK_SUCCESS if result else ACK_FAILURE
            self.send_now(vm.user_id, SimTag.VM_CREATE_ACK, [self.id, vm.vm_id, flag])

        if result:
            self.vm_list.append(vm)
            vm.being_instantiated = False
            vm.cloudlet_scheduler.previous_time = self.clock
            logger.debug(f"{self.clock:.2f}: {self.name}: VM #{vm.vm_id} placed on host #{vm.host_id}")

    def _process_vm_destroy(self, event: SimEvent, ack: bool) -> None:
        vm: Vm = event.data
        self.allocation_policy.deallocate_host_for_vm(vm)
        if vm in self.vm_list:
            self.vm_list.remove(vm)
        logger.debug(f"{self.clock:.2f}: {self.name}: VM #{vm.vm_id} destroyed")

        if ack:
            self.send_now(vm.user_id, SimTag.VM_DESTROY_ACK, [self.id, vm.vm_id, ACK_SUCCESS])

    def request_migration(self, vm: Vm, target: Host, delay: float) -> bool:
        """Reserve ``target`` for ``vm`` and complete the move after ``delay``.

        Returns False when the target can't hold the VM or already runs it; the
        simulation goes on.
        """
        if vm.host_id == target.host_id:
            logger.warning(f"{self.clock:.2f}: {self.name}: VM #{vm.vm_id} already runs on "
                           f"host #{target.host_id}, migration ignored")
            return False

        try:
            target.add_migrating_in_vm(vm)
        except MigrationAllocationError as e:
            logger.error(f"{self.clock:.2f}: {self.name}: migration refused: {e}")
            return False

        source = self.allocation_policy.get_host(vm.vm_id, vm.user_id)
        if source is not None:
            source.vm_scheduler.vms_migrating_out.add(vm.key)
        self.send(self.id, delay, SimTag.VM_MIGRATE, {"vm": vm, "host": target, "source": source})
        logger.info(f"{self.clock:.2f}: {self.name}: migrating VM #{vm.vm_id} "
                    f"to host #{target.host_id} in {delay:.2f}s")
        return True

    def _process_vm_migrate(self, event: SimEvent, ack: bool) -> None:
        vm: Vm = event.data["vm"]
        target: Host = event.data["host"]
        source = event.data.get("source")
        if source is not None:
            source.vm_scheduler.vms_migrating_out.discard(vm.key)

        if self.allocation_policy.get_host(vm.vm_id, vm.user_id) is None:
            target.remove_migrating_in_vm(vm)
            logger.warning(f"{self.clock:.2f}: {self.name}: VM #{vm.vm_id} was destroyed before "
                           f"its migration to host #{target.host_id} completed")
            if ack:
                self.send_now(vm.user_id, SimTag.VM_MIGRATE_ACK, [self.id, vm.vm_id, ACK_FAILURE])
            return

        self._update_cloudlet_processing()
        self.allocation_policy.deallocate_host_for_vm(vm)
        target.remove_migrating_in_vm(vm)
        result = self.allocation_policy.allocate_host_for_vm(vm, target)

        if result:
            logger.info(f"{self.clock:.2f}: {self.name}: migration of VM #{vm.vm_id} "
                        f"to host #{target.host_id} completed")
        else:
            logger.error(f"{self.clock:.2f}: {self.name}: VM #{vm.vm_id} could not be "
                         f"placed on host #{target.host_id} after migration")
            if vm in self.vm_list:
                self.vm_list.remove(vm)

        if ack:
            flag = ACK_SUCCESS if result else ACK_FAILURE
            self.send_now(vm.user_id, SimTag.VM_MIGRATE_ACK, [self.id, vm.vm_id, flag])

        self._update_cloudlet_processing()

    # Cloudlets

    def _process_cloudlet_submit(self, event: SimEvent) -> None:
        cloudlet: Cloudlet = event.data
        self._update_cloudlet_processing()

        if cloudlet.is_finished:
            logger.warning(f"{self.clock:.2f}: {self.name}: cloudlet #{cloudlet.cloudlet_id} "
                           f"already finished, returning it")
            self.send_now(cloudlet.user_id, SimTag.CLOUDLET_RETURN, cloudlet)
            return

        cloudlet.set_resource(self.id, self.characteristics.cost_per_sec, self.clock)
        host = self.allocation_policy.get_host(cloudlet.vm_id, cloudlet.user_id)
        vm = host.get_vm(cloudlet.vm_id, cloudlet.user_id) if host else None
        if vm is None:
            logger.error(f"{self.clock:.2f}: {self.name}: VM #{cloudlet.vm_id} not found for "
                         f"cloudlet #{cloudlet.cloudlet_id}")
            cloudlet.status = CloudletStatus.FAILED
            cloudlet.finish_time = self.clock
            self.send_now(cloudlet.user_id, SimTag.CLOUDLET_RETURN, cloudlet)
            return

        vm.cloudlet_scheduler.submit(cloudlet, self.clock)
        self._update_cloudlet_processing()

    def _update_cloudlet_processing(self) -> None:
        """Advance every host and keep exactly one processing event pending."""
        now = self.clock
        next_time = math.inf
        for host in self.host_list:
            next_time = min(next_time, host.update_vms_processing(now))

        if self.scheduling_interval > 0 and any(
            vm.cloudlet_scheduler.running_count for vm in self.vm_list
        ):
            next_time = min(next_time, now + self.scheduling_interval)

        self.cancel_events(lambda event: event.tag is SimTag.VM_DATACENTER_EVENT)
        if next_time != math.inf:
            min_gap = self.simulation.config.min_time_between_events
            next_time = max(next_time, now + min_gap)
            self.send(self.id, next_time - now, SimTag.VM_DATACENTER_EVENT)

        self._check_cloudlet_completion()

    def _check_cloudlet_completion(self) -> None:
        for host in self.host_list:
            for vm in host.vm_list:
                while vm.cloudlet_scheduler.has_finished_cloudlets():
                    cloudlet = vm.cloudlet_scheduler.next_finished_cloudlet()
                    self.send_now(cloudlet.user_id, SimTag.CLOUDLET_RETURN, cloudlet)
