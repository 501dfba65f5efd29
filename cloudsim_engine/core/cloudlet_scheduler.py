"""Execution of cloudlets inside a VM."""

from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, List, Optional

from loguru import logger

from .resources import Cloudlet, CloudletStatus

# Remaining work below this many instructions counts as done
_FINISH_TOLERANCE = 1e-6


class CloudletScheduler(ABC):
    """Shares a VM's granted MIPS among the cloudlets it runs."""

    def __init__(self, min_time_between_events: float = 0.01):
        self.min_time_between_events = min_time_between_events
        self.previous_time: float = 0.0
        self.exec_list: List[Cloudlet] = []
        self.finished: Deque[Cloudlet] = deque()

    @abstractmethod
    def capacity(self, mips_share: List[float]) -> float:
        """MIPS available to each cloudlet PE."""

    def submit(self, cloudlet: Cloudlet, current_time: float) -> None:
        cloudlet.status = CloudletStatus.INEXEC
        cloudlet.exec_start_time = current_time
        self.exec_list.append(cloudlet)

    def update_processing(self, current_time: float, mips_share: List[float]) -> float:
        """Advance every running cloudlet to ``current_time``.

        Returns the time at which the next cloudlet finishes, or 0.0 when idle.
        """
        elapsed = current_time - self.previous_time
        self.previous_time = current_time
        if not self.exec_list:
            return 0.0

        capacity = self.capacity(mips_share)
        if capacity <= 0:
            return 0.0

        for cloudlet in self.exec_list:
            cloudlet.remaining_length -= capacity * cloudlet.number_of_pes * elapsed

        for cloudlet in [c for c in self.exec_list if c.remaining_length <= _FINISH_TOLERANCE]:
            self.exec_list.remove(cloudlet)
            cloudlet.remaining_length = 0.0
            cloudlet.finish_time = current_time
            cloudlet.status = CloudletStatus.SUCCESS
            self.finished.append(cloudlet)
            logger.debug(f"{current_time:.2f}: cloudlet #{cloudlet.cloudlet_id} finished")

        if not self.exec_list:
            return 0.0

        next_event = min(
            current_time + cloudlet.remaining_length / (capacity * cloudlet.number_of_pes)
            for cloudlet in self.exec_list
        )
        return max(next_event, current_time + self.min_time_between_events)

    def has_finished_cloudlets(self) -> bool:
        return bool(self.finished)

    def next_finished_cloudlet(self) -> Optional[Cloudlet]:
        return self.finished.popleft() if self.finished else None

    @property
    def running_count(self) -> int:
        return len(self.exec_list)


class CloudletSchedulerTimeShared(CloudletScheduler):
    """All cloudlets run at once, splitting the VM's MIPS evenly per PE."""

    def capacity(self, mips_share: List[float]) -> float:
        total_mips = sum(mips_share)
        pes_in_use = sum(cloudlet.number_of_pes for cloudlet in self.exec_list)
        return total_mips / max(pes_in_use, len(mips_share))
