"""Visualization utilities for simulation results."""

from typing import Any, Dict
from pathlib import Path
import plotly.graph_objects as go
from plotly.subplots import make_subplots
import pandas as pd
from loguru import logger


def create_plots(analysis: Dict[str, Any], output_dir: Path) -> None:
    """Create visualization plots for simulation analysis."""

    output_dir = Path(output_dir)
    logger.info(f"Creating plots in {output_dir}")
    output_dir.mkdir(parents=True, exist_ok=True)

    cloudlets = analysis.get('cloudlets')
    if cloudlets is None or cloudlets.empty:
        logger.warning("No cloudlet results found for plotting")
        return

    plot_cloudlet_timeline(cloudlets, output_dir / "cloudlet_timeline.html")
    plot_placement(analysis, output_dir / "placement.html")

    logger.info("Plots created successfully")


def plot_cloudlet_timeline(cloudlets: pd.DataFrame, output_file: Path) -> None:
    """Gantt-style chart: one bar per cloudlet, one row per VM."""

    df = cloudlets.dropna(subset=['start_time', 'finish_time'])
    if df.empty:
        return

    fig = go.Figure()
    for status, color in (('success', 'green'), ('failed', 'red')):
        subset = df[df['status'] == status]
        if subset.empty:
            continue
        fig.add_trace(go.Bar(
            x=subset['finish_time'] - subset['start_time'],
            y=[f"VM {int(vm_id)}" for vm_id in subset['vm_id']],
            base=subset['start_time'],
            orientation='h',
            name=status.capitalize(),
            marker=dict(color=color),
            text=[f"#{cid}" for cid in subset['cloudlet_id']],
            hovertemplate="Cloudlet %{text}<br>start %{base:.2f}<br>duration %{x:.2f}<extra></extra>",
        ))

    fig.update_layout(
        title="Cloudlet Execution Timeline",
        xaxis_title="Simulation time",
        yaxis_title="VM",
        barmode='overlay',
        height=max(400, 40 * df['vm_id'].nunique()),
    )

    fig.write_html(str(output_file))


def plot_placement(analysis: Dict[str, Any], output_file: Path) -> None:
    """Cloudlets executed per VM and per datacenter."""

    placement = analysis.get('placement', {})
    per_vm = placement.get('cloudlets_per_vm', {})
    per_datacenter = placement.get('cloudlets_per_datacenter', {})
    if not per_vm:
        return

    fig = make_subplots(rows=1, cols=2, subplot_titles=['Cloudlets per VM', 'Cloudlets per Datacenter'])
    fig.add_trace(
        go.Bar(x=[f"VM {k}" for k in per_vm], y=list(per_vm.values()), name='VM'),
        row=1, col=1
    )
    fig.add_trace(
        go.Bar(x=[f"DC {k}" for k in per_datacenter], y=list(per_datacenter.values()), name='Datacenter'),
        row=1, col=2
    )

    fig.update_layout(title="Cloudlet Placement", showlegend=False, height=450)
    fig.write_html(str(output_file))
