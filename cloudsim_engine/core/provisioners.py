"""Capacity ledgers for PE MIPS, RAM and bandwidth.

Every provisioner keeps ``available + sum(allocated) == capacity``. Allocations
are keyed by :class:`~cloudsim_engine.core.resources.VmKey`.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Type

from loguru import logger

from .resources import VmKey


class Provisioner(ABC):
    """Common ledger bookkeeping."""

    def __init__(self, capacity: float):
        if capacity <= 0:
            raise ValueError(f"Provisioner capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.available = capacity

    @abstractmethod
    def allocated_for(self, key: VmKey) -> float:
        """Total amount held by ``key``."""

    @abstractmethod
    def deallocate(self, key: VmKey) -> None:
        """Return everything held by ``key``."""

    @abstractmethod
    def deallocate_all(self) -> None:
        """Reset the ledger."""

    @property
    def total_allocated(self) -> float:
        allocated = self.capacity - self.available
        return allocated if allocated > 0 else 0.0

    @property
    def utilization(self) -> float:
        return self.total_allocated / self.capacity


class PeProvisioner(Provisioner):
    """MIPS ledger of a single PE. A VM may hold several slices of one PE."""

    @abstractmethod
    def allocate(self, key: VmKey, mips: float) -> bool:
        """Add a slice of ``mips`` for ``key``."""

    @abstractmethod
    def allocate_shares(self, key: VmKey, shares: Sequence[float]) -> bool:
        """Replace every slice held by ``key`` with ``shares``."""

    @abstractmethod
    def allocated_shares(self, key: VmKey) -> Optional[List[float]]:
        """Slices held by ``key``, or None."""


class PeProvisionerSimple(PeProvisioner):
    """Grants MIPS while the PE has capacity left."""

    def __init__(self, mips: float):
        super().__init__(mips)
        self.pe_table: Dict[VmKey, List[float]] = {}

    def allocate(self, key: VmKey, mips: float) -> bool:
        if mips > self.available:
            return False
        self.pe_table.setdefault(key, []).append(mips)
        self.available -= mips
        return True

    def allocate_shares(self, key: VmKey, shares: Sequence[float]) -> bool:
        requested = sum(shares)
        held = self.allocated_for(key)
        if self.available + held < requested:
            return False
        self.available = self.available + held - requested
        self.pe_table[key] = list(shares)
        return True

    def allocated_shares(self, key: VmKey) -> Optional[List[float]]:
        return self.pe_table.get(key)

    def allocated_by_virtual_pe(self, key: VmKey, index: int) -> float:
        shares = self.pe_table.get(key, [])
        return shares[index] if 0 <= index < len(shares) else 0.0

    def allocated_for(self, key: VmKey) -> float:
        return sum(self.pe_table.get(key, ()))

    def deallocate(self, key: VmKey) -> None:
        shares = self.pe_table.pop(key, None)
        if shares:
            self.available += sum(shares)

    def deallocate_all(self) -> None:
        self.available = self.capacity
        self.pe_table.clear()


class ResourceProvisioner(Provisioner):
    """Ledger for a host-wide resource (RAM, bandwidth) holding one amount per VM."""

    resource = "resource"

    @abstractmethod
    def allocate(self, key: VmKey, amount: float) -> bool:
        """Set ``key``'s allocation to ``amount``, replacing any previous one."""

    def is_suitable(self, key: VmKey, amount: float) -> bool:
        return self.available + self.allocated_for(key) >= amount


class ResourceProvisionerSimple(ResourceProvisioner):
    """Grants the requested amount whenever it fits."""

    def __init__(self, capacity: float):
        super().__init__(capacity)
        self.table: Dict[VmKey, float] = {}

    def allocate(self, key: VmKey, amount: float) -> bool:
        held = self.table.get(key, 0.0)
        if self.available + held < amount:
            logger.debug(f"{self.resource} request of {amount} for VM {key} exceeds "
                         f"{self.available} available")
            return False
        self.available = self.available + held - amount
        self.table[key] = amount
        return True

    def allocated_for(self, key: VmKey) -> float:
        return self.table.get(key, 0.0)

    def deallocate(self, key: VmKey) -> None:
        amount = self.table.pop(key, None)
        if amount is not None:
            self.available += amount

    def deallocate_all(self) -> None:
        self.available = self.capacity
        self.table.clear()


class RamProvisionerSimple(ResourceProvisionerSimple):
    resource = "ram"


class BwProvisionerSimple(ResourceProvisionerSimple):
    resource = "bw"


PE_PROVISIONERS: Dict[str, Type[PeProvisioner]] = {
    "simple": PeProvisionerSimple,
}

RAM_PROVISIONERS: Dict[str, Type[ResourceProvisioner]] = {
    "simple": RamProvisionerSimple,
}

BW_PROVISIONERS: Dict[str, Type[ResourceProvisioner]] = {
    "simple": BwProvisionerSimple,
}


def create_provisioner(registry: Dict[str, type], name: str, capacity: float):
    """Instantiate the provisioner variant registered as ``name``."""
    if name not in registry:
        raise ValueError(f"Unknown provisioner type: {name}")
    return registry[name](capacity)
