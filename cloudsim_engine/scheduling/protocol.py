"""Broker negotiation phases and their transition rules.

The rules are pure functions of the broker's counters so they can be checked
without running a simulation.
"""

from enum import Enum
from typing import Iterable, Optional, Sequence


class BrokerPhase(Enum):
    """Where the broker is in its negotiation with the datacenters."""
    DISCOVERING = "discovering"
    PROVISIONING = "provisioning"
    SUBMITTING = "submitting"
    DRAINING = "draining"
    DONE = "done"


class AckDecision(Enum):
    """What to do after a VM creation acknowledgement."""
    WAIT = "wait"
    SUBMIT = "submit"
    RETRY_NEXT_DATACENTER = "retry_next_datacenter"
    ABORT = "abort"


class ReturnDecision(Enum):
    """What to do after a cloudlet comes back."""
    WAIT = "wait"
    FINISH = "finish"
    RESTART_PROVISIONING = "restart_provisioning"


def next_untried_datacenter(
    datacenter_ids: Sequence[int], requested_ids: Iterable[int]
) -> Optional[int]:
    """First datacenter, in registry order, not asked to create VMs yet."""
    tried = set(requested_ids)
    for datacenter_id in datacenter_ids:
        if datacenter_id not in tried:
            return datacenter_id
    return None


def decide_after_vm_ack(
    created: int,
    total_vms: int,
    destroyed: int,
    acks: int,
    requested: int,
    untried_datacenter: Optional[int],
) -> AckDecision:
    """Transition taken once an ack has been counted."""
    if created == total_vms - destroyed:
        return AckDecision.SUBMIT
    if acks != requested:
        return AckDecision.WAIT
    if untried_datacenter is not None:
        return AckDecision.RETRY_NEXT_DATACENTER
    if created > 0:
        return AckDecision.SUBMIT
    return AckDecision.ABORT


def decide_after_cloudlet_return(pending: int, in_flight: int) -> ReturnDecision:
    """Transition taken once a returned cloudlet has been booked."""
    if in_flight > 0:
        return ReturnDecision.WAIT
    if pending == 0:
        return ReturnDecision.FINISH
    # Everything sent came back but some cloudlets wait for VMs never created
    return ReturnDecision.RESTART_PROVISIONING
