"""Tests for the datacenter entity: VM lifecycle, cloudlet execution and migration."""

import pytest

from cloudsim_engine.core.datacenter import DatacenterCharacteristics, Datacenter
from cloudsim_engine.core.allocation import create_allocation_policy
from cloudsim_engine.core.events import ACK_FAILURE, ACK_SUCCESS, SimTag
from cloudsim_engine.core.resources import Cloudlet, CloudletStatus
from cloudsim_engine.core.simulation import Simulation


@pytest.fixture
def simulation():
    return Simulation()


def test_datacenter_needs_hosts():
    characteristics = DatacenterCharacteristics("x86", "Linux", "Xen", host_list=[])
    with pytest.raises(ValueError):
        Datacenter("Empty", characteristics, create_allocation_policy("simple", []))


def test_characteristics_reply_and_registration(simulation, make_datacenter, make_host, recorder_cls):
    datacenter = make_datacenter("Datacenter_0", [make_host(0), make_host(1)])
    simulation.add_entity(datacenter)
    user = recorder_cls(
        "user", on_start=lambda u: u.send_now(datacenter.id, SimTag.RESOURCE_CHARACTERISTICS, u.id)
    )
    simulation.add_entity(user)

    simulation.run()

    assert simulation.cloud_resource_ids() == [datacenter.id]
    [reply] = user.received
    assert reply.tag is SimTag.RESOURCE_CHARACTERISTICS
    assert reply.data.id == datacenter.id
    assert reply.data.number_of_pes == 4
    assert reply.data.mips_of_one_pe == 1000.0
    assert all(host.datacenter_id == datacenter.id for host in datacenter.host_list)


def test_vm_create_ack_payload(simulation, make_datacenter, make_host, make_vm, recorder_cls):
    datacenter = make_datacenter("Datacenter_0", [make_host(0)])
    simulation.add_entity(datacenter)

    def request_vms(user):
        user.send_now(datacenter.id, SimTag.VM_CREATE_ACK, make_vm(vm_id=3, user_id=user.id))
        user.send_now(datacenter.id, SimTag.VM_CREATE_ACK, make_vm(vm_id=4, user_id=user.id, pes=8))

    user = recorder_cls("user", on_start=request_vms)
    simulation.add_entity(user)
    simulation.run()

    assert [event.data for event in user.received] == [
        [datacenter.id, 3, ACK_SUCCESS],
        [datacenter.id, 4, ACK_FAILURE],
    ]
    assert [vm.vm_id for vm in datacenter.vm_list] == [3]


def test_vm_create_without_ack_and_destroy_with_ack(simulation, make_datacenter, make_host, make_vm, recorder_cls):
    host = make_host(0)
    datacenter = make_datacenter("Datacenter_0", [host])
    simulation.add_entity(datacenter)

    def lifecycle(user):
        vm = make_vm(vm_id=1, user_id=user.id)
        user.send_now(datacenter.id, SimTag.VM_CREATE, vm)
        user.send(datacenter.id, 1.0, SimTag.VM_DESTROY_ACK, vm)

    user = recorder_cls("user", on_start=lifecycle)
    simulation.add_entity(user)
    simulation.run()

    assert [event.tag for event in user.received] == [SimTag.VM_DESTROY_ACK]
    assert user.received[0].data == [datacenter.id, 1, ACK_SUCCESS]
    assert host.vm_list == []
    assert datacenter.vm_list == []


def test_cloudlets_share_a_vm(simulation, make_datacenter, make_host, make_vm, recorder_cls):
    datacenter = make_datacenter("Datacenter_0", [make_host(0)])
    simulation.add_entity(datacenter)
    cloudlets = []

    def run_work(user):
        vm = make_vm(vm_id=0, user_id=user.id, mips=1000.0)
        user.send_now(datacenter.id, SimTag.VM_CREATE, vm)
        for i in range(2):
            cloudlet = Cloudlet(i, user_id=user.id, length=10000.0, vm_id=0)
            cloudlets.append(cloudlet)
            user.send_now(datacenter.id, SimTag.CLOUDLET_SUBMIT, cloudlet)

    user = recorder_cls("user", on_start=run_work)
    simulation.add_entity(user)
    simulation.run()

    assert [event.tag for event in user.received] == [SimTag.CLOUDLET_RETURN] * 2
    assert user.receive_times == [pytest.approx(20.0)] * 2
    for cloudlet in cloudlets:
        assert cloudlet.status is CloudletStatus.SUCCESS
        assert cloudlet.datacenter_id == datacenter.id
        assert cloudlet.actual_cpu_time == pytest.approx(20.0)
        assert cloudlet.processing_cost == pytest.approx(60.0)


def test_cloudlet_for_missing_vm_fails(simulation, make_datacenter, make_host, recorder_cls):
    datacenter = make_datacenter("Datacenter_0", [make_host(0)])
    simulation.add_entity(datacenter)
    cloudlet_holder = []

    def submit_orphan(user):
        cloudlet = Cloudlet(0, user_id=user.id, length=1000.0, vm_id=42)
        cloudlet_holder.append(cloudlet)
        user.send_now(datacenter.id, SimTag.CLOUDLET_SUBMIT, cloudlet)

    user = recorder_cls("user", on_start=submit_orphan)
    simulation.add_entity(user)
    simulation.run()

    assert [event.tag for event in user.received] == [SimTag.CLOUDLET_RETURN]
    assert cloudlet_holder[0].status is CloudletStatus.FAILED


def test_unknown_tag_is_dropped(simulation, make_datacenter, make_host, recorder_cls):
    datacenter = make_datacenter("Datacenter_0", [make_host(0)])
    simulation.add_entity(datacenter)
    user =recorder_cls("user", on_start=lambda u: u.send_now(datacenter.id, SimTag.CLOUDLET_RETURN, None))
    simulation.add_entity(user)

    simulation.run()

    assert user.received == []


def test_migration_moves_the_vm(simulation, make_datacenter, make_host, make_vm):
    source, target = make_host(0), make_host(1)
    datacenter = make_datacenter("Datacenter_0", [source, target], policy="first_fit")
    simulation.add_entity(datacenter)
    vm = make_vm(vm_id=7, ram=1024)
    assert datacenter.allocation_policy.allocate_host_for_vm(vm)
    assert vm.host_id == source.host_id

    assert datacenter.request_migration(vm, target, delay=5.0)

    # Reserved on the target, still running on the source
    assert vm in source.vm_list
    assert target.vms_migrating_in == [vm]
    assert target.ram_provisioner.available == target.ram - 1024
    assert vm.key in source.vm_scheduler.vms_migrating_out

    simulation.run()

    assert simulation.clock == pytest.approx(5.0)
    assert vm.host_id == target.host_id
    assert source.vm_list == []
    assert target.vm_list == [vm]
    assert target.vms_migrating_in == []
    assert source.ram_provisioner.available == source.ram
    assert source.vm_scheduler.vms_migrating_out == set()
    assert target.ram_provisioner.available == target.ram - 1024
    assert datacenter.allocation_policy.get_host(vm.vm_id, vm.user_id) is target


def test_migration_to_a_full_host_is_refused(simulation, make_datacenter, make_host, make_vm):
    source = make_host(0, pe_mips=[1000.0, 1000.0])
    target = make_host(1, pe_mips=[1000.0])
    datacenter = make_datacenter("Datacenter_0", [source, target], policy="first_fit")
    simulation.add_entity(datacenter)
    vm = make_vm(pes=2)
    datacenter.allocation_policy.allocate_host_for_vm(vm)

    assert not datacenter.request_migration(vm, target, delay=1.0)

    assert len(simulation.future) == 0
    assert target.ram_provisioner.available == target.ram
    assert target.vms_migrating_in == []
    assert vm.host_id == source.host_id


def test_migration_to_the_current_host_is_refused(simulation, make_datacenter, make_host, make_vm):
    host = make_host(0, pe_mips=[1000.0, 1000.0])
    datacenter = make_datacenter("Datacenter_0", [host])
    simulation.add_entity(datacenter)
    vm = make_vm(mips=1000.0)
    assert datacenter.allocation_policy.allocate_host_for_vm(vm)

    assert not datacenter.request_migration(vm, host, delay=1.0)

    assert len(simulation.future) == 0
    assert host.vm_list == [vm]
    assert host.vms_migrating_in == []
    assert len(host.vm_scheduler.free_pes) == 1
    assert host.available_mips == pytest.approx(1000.0)


def test_vm_destroyed_before_migration_is_not_revived(simulation, make_datacenter, make_host, make_vm, recorder_cls):
    source, target = make_host(0), make_host(1)
    datacenter = make_datacenter("Datacenter_0", [source, target], policy="first_fit")
    simulation.add_entity(datacenter)
    vm = make_vm(vm_id=3, ram=512)
    user = recorder_cls("user", on_start=lambda u: u.send(datacenter.id, 0.5, SimTag.VM_DESTROY, vm))
    simulation.add_entity(user)
    assert datacenter.allocation_policy.allocate_host_for_vm(vm)
    assert datacenter.request_migration(vm, target, delay=1.0)

    simulation.run()

    assert simulation.clock == pytest.approx(1.0)
    assert source.vm_list == []
    assert target.vm_list == []
    assert target.vms_migrating_in == []
    assert not vm.in_migration
    assert vm.host_id is None
    assert source.vm_scheduler.vms_migrating_out == set()
    assert target.ram_provisioner.available == target.ram
    assert target.available_mips == pytest.approx(target.total_mips)
    assert datacenter.allocation_policy.get_host(vm.vm_id, vm.user_id) is None
