"""Broker negotiation with datacenters."""

from .broker import DatacenterBroker
from .protocol import (
    BrokerPhase,
    AckDecision,
    ReturnDecision,
    decide_after_vm_ack,
    decide_after_cloudlet_return,
    next_untried_datacenter,
)

__all__ = [
    "DatacenterBroker",
    "BrokerPhase",
    "AckDecision",
    "ReturnDecision",
    "decide_after_vm_ack",
    "decide_after_cloudlet_return",
    "next_untried_datacenter",
]
