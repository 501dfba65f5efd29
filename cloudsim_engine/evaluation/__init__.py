"""Evaluation and analysis modules."""

from .metrics import (
    SimulationAnalyzer,
    MetricsCalculator,
    cloudlets_to_frame,
    host_utilization_snapshot,
)

__all__ = [
    "SimulationAnalyzer",
    "MetricsCalculator",
    "cloudlets_to_frame",
    "host_utilization_snapshot",
]
