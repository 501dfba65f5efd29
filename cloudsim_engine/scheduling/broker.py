"""Datacenter broker: provisions VMs and runs cloudlets on behalf of a user."""

from typing import Dict, List, Optional, Sequence

from loguru import logger

from ..core.datacenter import DatacenterCharacteristics
from ..core.entity import SimEntity
from ..core.events import ACK_SUCCESS, SimEvent, SimTag
from ..core.resources import Cloudlet, Vm
from .protocol import (
    AckDecision,
    BrokerPhase,
    ReturnDecision,
    decide_after_cloudlet_return,
    decide_after_vm_ack,
    next_untried_datacenter,
)


class DatacenterBroker(SimEntity):
    """Negotiates VM placement with datacenters, then submits and collects cloudlets.

    Phases: discover datacenters, ask each for its characteristics, create the
    VMs (failing over from one datacenter to the next), submit cloudlets, and
    destroy the VMs once every cloudlet is back.
    """

    def __init__(self, name: str):
        super().__init__(name)
        self.phase = BrokerPhase.DISCOVERING

        self.vm_list: List[Vm] = []
        self.vms_created: List[Vm] = []
        self.cloudlet_list: List[Cloudlet] = []
        self.cloudlet_submitted: List[Cloudlet] = []
        self.cloudlet_received: List[Cloudlet] = []

        self.cloudlets_submitted = 0  # in flight
        self.vms_requested = 0
        self.vms_acks = 0
        self.vms_destroyed = 0

        self.datacenter_ids: List[int] = []
        self.datacenter_requested_ids: List[int] = []
        self.vms_to_datacenters: Dict[int, int] = {}
        self.datacenter_characteristics: Dict[int, DatacenterCharacteristics] = {}

    # User API

    def submit_vm_list(self, vms: Sequence[Vm]) -> None:
        self.vm_list.extend(vms)

    def submit_cloudlet_list(self, cloudlets: Sequence[Cloudlet]) -> None:
        self.cloudlet_list.extend(cloudlets)

    def bind_cloudlet_to_vm(self, cloudlet_id: int, vm_id: int) -> None:
        for cloudlet in self.cloudlet_list:
            if cloudlet.cloudlet_id == cloudlet_id:
                cloudlet.vm_id = vm_id
                return
        raise ValueError(f"{self.name}: no pending cloudlet #{cloudlet_id}")

    # Entity lifecycle

    def start_entity(self) -> None:
        logger.info(f"{self.name} is starting...")
        self.phase = BrokerPhase.DISCOVERING
        self.send(self.id, 0.0, SimTag.RESOURCE_CHARACTERISTICS_REQUEST)

    def shutdown_entity(self) -> None:
        self.phase = BrokerPhase.DONE
        super().shutdown_entity()

    def process_event(self, event: SimEvent) -> None:
        tag = event.tag
        if tag is SimTag.RESOURCE_CHARACTERISTICS_REQUEST:
            self._process_resource_characteristics_request(event)
        elif tag is SimTag.RESOURCE_CHARACTERISTICS:
            self._process_resource_characteristics(event)
        elif tag is SimTag.VM_CREATE_ACK:
            self._process_vm_create(event)
        elif tag is SimTag.CLOUDLET_RETURN:
            self._process_cloudlet_return(event)
        else:
            self.process_other_event(event)

    # Discovery

    def _process_resource_characteristics_request(self, event: SimEvent) -> None:
        self.datacenter_ids = self.simulation.cloud_resource_ids()
        self.datacenter_characteristics = {}

        logger.info(f"{self.clock:.2f}: {self.name}: Cloud Resource List received with "
                    f"{len(self.datacenter_ids)} resource(s)")

        if not self.datacenter_ids:
            logger.error(f"{self.clock:.2f}: {self.name}: no datacenter registered. Aborting")
            self.finish_execution()
            return

        for datacenter_id in self.datacenter_ids:
            self.send_now(datacenter_id, SimTag.RESOURCE_CHARACTERISTICS, self.id)

    def _process_resource_characteristics(self, event: SimEvent) -> None:
        characteristics: DatacenterCharacteristics = event.data
        self.datacenter_characteristics[characteristics.id] = characteristics

        if len(self.datacenter_characteristics) == len(self.datacenter_ids):
            self.datacenter_requested_ids = []
            self.create_vms_in_datacenter(self.datacenter_ids[0])

    # Provisioning

    def create_vms_in_datacenter(self, datacenter_id: int) -> None:
        """Ask ``datacenter_id`` to create every VM not placed anywhere yet."""
        self.phase = BrokerPhase.PROVISIONING
        datacenter_name = self.simulation.get_entity_name(datacenter_id)

        requested_vms = 0
        for vm in self.vm_list:
            if vm.vm_id not in self.vms_to_datacenters:
                logger.info(f"{self.clock:.2f}: {self.name}: Trying to Create VM #{vm.vm_id} "
                            f"in {datacenter_name}")
                self.send_now(datacenter_id, SimTag.VM_CREATE_ACK, vm)
                requested_vms += 1

        if requested_vms == 0:
            logger.warning(f"{self.clock:.2f}: {self.name}: no VM left to create in {datacenter_name}")

        self.datacenter_requested_ids.append(datacenter_id)
        self.vms_requested = requested_vms
        self.vms_acks = 0

    def _process_vm_create(self, event: SimEvent) -> None:
        datacenter_id, vm_id, result = event.data

        if result == ACK_SUCCESS:
            self.vms_to_datacenters[vm_id] = datacenter_id
            vm = self._find_vm(self.vm_list, vm_id)
            self.vms_created.append(vm)
            logger.info(f"{self.clock:.2f}: {self.name}: VM #{vm_id} has been created in "
                        f"Datacenter #{datacenter_id}, Host #{vm.host_id}")
        else:
            logger.info(f"{self.clock:.2f}: {self.name}: Creation of VM #{vm_id} failed in "
                        f"Datacenter #{datacenter_id}")

        self.vms_acks += 1

        decision = decide_after_vm_ack(
            created=len(self.vms_created),
            total_vms=len(self.vm_list),
            destroyed=self.vms_destroyed,
            acks=self.vms_acks,
            requested=self.vms_requested,
            untried_datacenter=next_untried_datacenter(
                self.datacenter_ids, self.datacenter_requested_ids
            ),
        )

        if decision is AckDecision.SUBMIT:
            self.submit_cloudlets()
        elif decision is AckDecision.RETRY_NEXT_DATACENTER:
            self.create_vms_in_datacenter(
                next_untried_datacenter(self.datacenter_ids, self.datacenter_requested_ids)
            )
        elif decision is AckDecision.ABORT:
            logger.error(f"{self.clock:.2f}: {self.name}: none of the required VMs could be "
                         f"created. Aborting")
            self.finish_execution()

    # Cloudlets

    def submit_cloudlets(self) -> None:
        """Send every pending cloudlet whose VM exists, round robin for unbound ones."""
        self.phase = BrokerPhase.SUBMITTING
        created_ids = {vm.vm_id for vm in self.vms_created}
        vm_index = 0
        sent: List[Cloudlet] = []

        for cloudlet in self.cloudlet_list:
            if cloudlet.vm_id is None:
                if not self.vms_created:
                    continue
                vm = self.vms_created[vm_index]
            elif cloudlet.vm_id in created_ids:
                vm = self._find_vm(self.vms_created, cloudlet.vm_id)
            else:
                logger.info(f"{self.clock:.2f}: {self.name}: Postponing execution of cloudlet "
                            f"{cloudlet.cloudlet_id}: bound VM not available")
                continue

            logger.info(f"{self.clock:.2f}: {self.name}: Sending cloudlet "
                        f"{cloudlet.cloudlet_id} to VM #{vm.vm_id}")
            cloudlet.vm_id = vm.vm_id
            self.send_now(self.vms_to_datacenters[vm.vm_id], SimTag.CLOUDLET_SUBMIT, cloudlet)
            self.cloudlets_submitted += 1
            vm_index = (vm_index + 1) % len(self.vms_created)
            sent.append(cloudlet)

        self.cloudlet_submitted.extend(sent)
        self.cloudlet_list = [cloudlet for cloudlet in self.cloudlet_list if cloudlet not in sent]
        self.phase = BrokerPhase.DRAINING

        if self.cloudlets_submitted == 0 and self.cloudlet_list:
            logger.warning(f"{self.clock:.2f}: {self.name}: {len(self.cloudlet_list)} cloudlet(s) "
                           f"wait for VMs that were never created")

    def _process_cloudlet_return(self, event: SimEvent) -> None:
        cloudlet: Cloudlet = event.data
        self.cloudlet_received.append(cloudlet)
        logger.info(f"{self.clock:.2f}: {self.name}: Cloudlet {cloudlet.cloudlet_id} received")
        self.cloudlets_submitted -= 1

        decision = decide_after_cloudlet_return(
            pending=len(self.cloudlet_list), in_flight=self.cloudlets_submitted
        )
        if decision is ReturnDecision.FINISH:
            logger.info(f"{self.clock:.2f}: {self.name}: All Cloudlets executed. Finishing...")
            self.clear_datacenters()
            self.finish_execution()
        elif decision is ReturnDecision.RESTART_PROVISIONING:
            # Drops the VMs already running to make room for the bound ones still missing
            self.clear_datacenters()
            self.datacenter_requested_ids = []
            self.create_vms_in_datacenter(self.datacenter_ids[0])

    # Teardown

    def clear_datacenters(self) -> None:
        """Destroy every VM this broker created."""
        for vm in self.vms_created:
            logger.info(f"{self.clock:.2f}: {self.name}: Destroying VM #{vm.vm_id}")
            self.send_now(self.vms_to_datacenters[vm.vm_id], SimTag.VM_DESTROY, vm)
        self.vms_destroyed += len(self.vms_created)
        self.vms_created.clear()

    def finish_execution(self) -> None:
        self.send_now(self.id, SimTag.END_OF_SIMULATION)

    @staticmethod
    def _find_vm(vms: Sequence[Vm], vm_id: int) -> Optional[Vm]:
        return next((vm for vm in vms if vm.vm_id == vm_id), None)
