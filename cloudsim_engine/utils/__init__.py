"""Utility modules."""

from .config import (
    ScenarioConfig,
    Scenario,
    load_config,
    save_config,
    save_results,
    default_config,
    build_simulation,
)
from .visualization import create_plots, plot_cloudlet_timeline

__all__ = [
    "ScenarioConfig",
    "Scenario",
    "load_config",
    "save_config",
    "save_results",
    "default_config",
    "build_simulation",
    "create_plots",
    "plot_cloudlet_timeline",
]
