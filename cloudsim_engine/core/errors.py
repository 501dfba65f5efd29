"""Exceptions raised by the simulation kernel."""

from typing import Optional


class SimulationError(Exception):
    """Base class for simulation errors."""


class UnknownEntityError(SimulationError):
    """An event was addressed to an id that no entity holds."""

    def __init__(self, entity_id: int):
        super().__init__(f"No entity registered with id {entity_id}")
        self.entity_id = entity_id


class MigrationAllocationError(SimulationError):
    """A host could not reserve capacity for a VM migrating in.

    Raised after the partial reservation has been released, so the host ledgers
    are exactly as they were before the attempt.
    """

    def __init__(self, vm_key, host_id: int, resource: str, detail: Optional[str] = None):
        message = f"Allocation of VM {vm_key} to host #{host_id} failed by {resource}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.vm_key = vm_key
        self.host_id = host_id
        self.resource = resource
