"""Simulation analysis and metrics calculation."""

from typing import Any, Dict, List, Optional, Sequence
import numpy as np
import pandas as pd
from loguru import logger

from ..core.host import Host
from ..core.resources import Cloudlet, CloudletStatus

CLOUDLET_COLUMNS = [
    'cloudlet_id', 'status', 'datacenter_id', 'vm_id', 'length', 'pes',
    'submission_time', 'start_time', 'finish_time', 'cpu_time', 'cost',
]


def cloudlets_to_frame(cloudlets: Sequence[Cloudlet]) -> pd.DataFrame:
    """One row per cloudlet, ordered by finish time then id."""
    rows = [
        {
            'cloudlet_id': cloudlet.cloudlet_id,
            'status': cloudlet.status.value,
            'datacenter_id': cloudlet.datacenter_id,
            'vm_id': cloudlet.vm_id,
            'length': cloudlet.length,
            'pes': cloudlet.number_of_pes,
            'submission_time': cloudlet.submission_time,
            'start_time': cloudlet.exec_start_time,
            'finish_time': cloudlet.finish_time,
            'cpu_time': cloudlet.actual_cpu_time,
            'cost': cloudlet.processing_cost,
        }
        for cloudlet in cloudlets
    ]
    frame = pd.DataFrame(rows, columns=CLOUDLET_COLUMNS)
    if not frame.empty:
        frame = frame.sort_values(['finish_time', 'cloudlet_id'], na_position='last')
        frame = frame.reset_index(drop=True)
    return frame


class MetricsCalculator:
    """Calculator for cloudlet and host metrics."""

    def __init__(self):
        self.logger = logger.bind(component="MetricsCalculator")

    def calculate_cloudlet_metrics(self, frame: pd.DataFrame) -> Dict[str, Any]:
        """Makespan, execution time statistics and success rate."""
        if frame.empty:
            return {
                'total_cloudlets': 0,
                'successful_cloudlets': 0,
                'failed_cloudlets': 0,
                'success_rate': 0.0,
                'makespan': 0.0,
                'avg_execution_time': 0.0,
                'p95_execution_time': 0.0,
                'max_execution_time': 0.0,
                'total_cost': 0.0,
            }

        succeeded = frame[frame['status'] == CloudletStatus.SUCCESS.value]
        cpu_times = succeeded['cpu_time'].to_numpy(dtype=float)

        metrics = {
            'total_cloudlets': int(len(frame)),
            'successful_cloudlets': int(len(succeeded)),
            'failed_cloudlets': int(len(frame) - len(succeeded)),
            'success_rate': len(succeeded) / len(frame),
            'makespan': float(succeeded['finish_time'].max()) if len(succeeded) else 0.0,
            'avg_execution_time': float(np.mean(cpu_times)) if len(cpu_times) else 0.0,
            'p95_execution_time': float(np.percentile(cpu_times, 95)) if len(cpu_times) else 0.0,
            'max_execution_time': float(np.max(cpu_times)) if len(cpu_times) else 0.0,
            'total_cost': float(frame['cost'].sum()),
        }
        self.logger.debug(f"Cloudlet metrics: {metrics}")
        return metrics

    def calculate_placement_metrics(self, frame: pd.DataFrame) -> Dict[str, Dict[str, int]]:
        """How many cloudlets each VM and each datacenter executed."""
        if frame.empty:
            return {'cloudlets_per_vm': {}, 'cloudlets_per_datacenter': {}}

        per_vm = frame.groupby('vm_id').size()
        per_datacenter = frame.dropna(subset=['datacenter_id']).groupby('datacenter_id').size()
        return {
            'cloudlets_per_vm': {str(int(k)): int(v) for k, v in per_vm.items()},
            'cloudlets_per_datacenter': {str(int(k)): int(v) for k, v in per_datacenter.items()},
        }

    def calculate_host_metrics(self, hosts: Sequence[Host], frame: pd.DataFrame) -> Dict[str, Any]:
        """Capacity of the fleet and its average CPU load over the makespan."""
        total_mips = float(sum(host.total_mips for host in hosts))
        metrics = {
            'total_hosts': len(hosts),
            'failed_hosts': sum(1 for host in hosts if host.failed),
            'total_pes': sum(host.number_of_pes for host in hosts),
            'total_mips': total_mips,
            'avg_cpu_utilization': 0.0,
        }

        if frame.empty or total_mips <= 0:
            return metrics

        succeeded = frame[frame['status'] == CloudletStatus.SUCCESS.value]
        makespan = float(succeeded['finish_time'].max()) if len(succeeded) else 0.0
        if makespan > 0:
            executed = float((succeeded['length'] * succeeded['pes']).sum())
            metrics['avg_cpu_utilization'] = min(1.0, executed / (total_mips * makespan))
        return metrics


def host_utilization_snapshot(hosts: Sequence[Host]) -> pd.DataFrame:
    """Current PE, RAM and bandwidth utilization of every host."""
    rows = []
    for host in hosts:
        total_mips = host.total_mips
        rows.append({
            'host_id': host.host_id,
            'datacenter_id': host.datacenter_id,
            'vms': len(host.vm_list),
            'pe_utilization': 1.0 - host.available_mips / total_mips if total_mips else 0.0,
            'ram_utilization': host.ram_provisioner.utilization,
            'bw_utilization': host.bw_provisioner.utilization,
            'failed': host.failed,
        })
    return pd.DataFrame(rows)


class SimulationAnalyzer:
    """Analyzer for a finished simulation run."""

    def __init__(self):
        self.calculator = MetricsCalculator()
        self.logger = logger.bind(component="SimulationAnalyzer")

    def analyze_simulation(
        self,
        cloudlets: Sequence[Cloudlet],
        hosts: Sequence[Host],
        final_clock: float,
        events_processed: int = 0,
        experiment: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Comprehensive analysis of simulation results.

        The returned dict is JSON friendly except for ``cloudlets``, which holds
        the per-cloudlet DataFrame.
        """
        self.logger.info(f"Analyzing simulation with {len(cloudlets)} returned cloudlets "
                         f"on {len(hosts)} hosts")

        frame = cloudlets_to_frame(cloudlets)
        cloudlet_metrics = self.calculator.calculate_cloudlet_metrics(frame)

        analysis = {
            'experiment': dict(experiment or {}),
            'summary': {
                'simulation_duration': final_clock,
                'events_processed': events_processed,
                'total_cloudlets': cloudlet_metrics['total_cloudlets'],
                'successful_cloudlets': cloudlet_metrics['successful_cloudlets'],
                'failed_cloudlets': cloudlet_metrics['failed_cloudlets'],
            },
            'cloudlet_metrics': cloudlet_metrics,
            'placement': self.calculator.calculate_placement_metrics(frame),
            'host_metrics': self.calculator.calculate_host_metrics(hosts, frame),
            'cloudlets': frame,
        }

        self.logger.info(f"Analysis completed. Makespan: {cloudlet_metrics['makespan']:.2f}, "
                         f"success rate: {cloudlet_metrics['success_rate']:.2%}")
        return analysis

    def compare_runs(self, analyses: List[Dict[str, Any]]) -> Dict[str, Dict[str, float]]:
        """Mean/std/min/max of the headline metrics across several runs."""
        comparison = {}
        for metric in ('makespan', 'avg_execution_time', 'success_rate'):
            values = np.array([a['cloudlet_metrics'][metric] for a in analyses], dtype=float)
            if values.size == 0:
                continue
            comparison[metric] = {
                'mean': float(np.mean(values)),
                'std': float(np.std(values)),
                'min': float(np.min(values)),
                'max': float(np.max(values)),
            }
        return comparison
