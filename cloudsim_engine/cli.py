"""Command-line interface for the cloud datacenter simulator."""

import typer
from typing import Optional
from pathlib import Path
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
import pandas as pd
from loguru import logger

from .evaluation.metrics import SimulationAnalyzer
from .utils.config import build_simulation, default_config, load_config, save_config, save_results
from .utils.visualization import create_plots

app = typer.Typer(name="cloudsim", help="Cloud Datacenter Simulator")
console = Console()


@app.command()
def simulate(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    plot: bool = typer.Option(False, "--plot", "-p", help="Write HTML plots to the output directory"),
) -> None:
    """Run a datacenter simulation."""

    if verbose:
        logger.remove()
        logger.add("logs/simulation_{time}.log", level="DEBUG")
        logger.add(lambda msg: console.print(msg, style="dim", end=""), level="INFO")

    console.print("🚀 Starting Cloud Datacenter Simulation", style="bold blue")

    # Load configuration
    if config and config.exists():
        scenario_config = load_config(config)
        console.print(f"📋 Loaded configuration from {config}")
    elif config:
        console.print(f"❌ Configuration file not found: {config}", style="bold red")
        raise typer.Exit(code=1)
    else:
        scenario_config = default_config()
        console.print("📋 Using default configuration")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Building scenario...", total=None)
        scenario = build_simulation(scenario_config)
        progress.update(task, description=f"Built {len(scenario.datacenters)} datacenter(s), "
                                          f"{len(scenario.hosts)} host(s)")

        progress.update(task, description="Simulating...")
        final_clock = scenario.run()
        progress.update(task, description="Simulation completed")

    # Analyze results
    console.print("📊 Analyzing results...")
    analyzer = SimulationAnalyzer()
    analysis = analyzer.analyze_simulation(
        scenario.broker.cloudlet_received,
        scenario.hosts,
        final_clock,
        events_processed=scenario.simulation.events_processed,
        experiment=scenario_config.experiment,
    )

    display_cloudlets(analysis['cloudlets'])
    display_results_summary(analysis)

    if output:
        output_dir = Path(output)
        save_results(analysis, output_dir)
        if plot:
            create_plots(analysis, output_dir)
        console.print(f"💾 Results saved to {output_dir}")
    elif plot:
        console.print("⚠️  --plot needs --output, skipping plots", style="yellow")

    console.print("✅ Simulation completed successfully!", style="bold green")


@app.command()
def evaluate(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    runs: int = typer.Option(3, "--runs", "-r", min=1, help="Number of runs, one seed each"),
) -> None:
    """Run the scenario with consecutive seeds and compare the runs."""

    console.print("🔬 Starting Evaluation", style="bold blue")

    if config and not config.exists():
        console.print(f"❌ Configuration file not found: {config}", style="bold red")
        raise typer.Exit(code=1)
    scenario_config = load_config(config) if config else default_config()
    base_seed = scenario_config.simulation.random_seed

    analyzer = SimulationAnalyzer()
    analyses = []
    for run in range(runs):
        scenario_config.simulation.random_seed = base_seed + run
        console.print(f"  Run {run + 1}/{runs} (seed {base_seed + run})")
        scenario = build_simulation(scenario_config)
        final_clock = scenario.run()
        analyses.append(analyzer.analyze_simulation(
            scenario.broker.cloudlet_received,
            scenario.hosts,
            final_clock,
            events_processed=scenario.simulation.events_processed,
            experiment=scenario_config.experiment,
        ))

    display_comparison_results(analyzer.compare_runs(analyses))
    console.print("✅ Evaluation completed!", style="bold green")


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("configs/default.yaml"), help="Where to write the configuration"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
) -> None:
    """Write the default scenario configuration."""

    if path.exists() and not force:
        console.print(f"❌ {path} already exists, use --force to overwrite", style="bold red")
        raise typer.Exit(code=1)

    save_config(default_config(), path)
    console.print(f"📝 Default configuration written to {path}", style="bold green")


def display_cloudlets(cloudlets: pd.DataFrame) -> None:
    """Display the per-cloudlet output table."""

    table = Table(title="Cloudlet Results")
    for column, style in (
        ("Cloudlet ID", "cyan"),
        ("Status", "green"),
        ("Datacenter ID", "magenta"),
        ("VM ID", "magenta"),
        ("Time", "yellow"),
        ("Start Time", "yellow"),
        ("Finish Time", "yellow"),
    ):
        table.add_column(column, style=style)

    for row in cloudlets.itertuples(index=False):
        table.add_row(
            str(row.cloudlet_id),
            row.status.upper(),
            _format_id(row.datacenter_id),
            _format_id(row.vm_id),
            f"{row.cpu_time:.2f}",
            _format_time(row.start_time),
            _format_time(row.finish_time),
        )

    console.print(table)


def display_results_summary(analysis: dict) -> None:
    """Display simulation results summary."""

    table = Table(title="Simulation Results Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Unit", style="yellow")

    summary = analysis.get('summary', {})
    cloudlet_metrics = analysis.get('cloudlet_metrics', {})
    host_metrics = analysis.get('host_metrics', {})

    metrics = [
        ("Simulated Time", f"{summary.get('simulation_duration', 0):.2f}", "seconds"),
        ("Events Processed", f"{summary.get('events_processed', 0)}", "count"),
        ("Cloudlets Returned", f"{summary.get('total_cloudlets', 0)}", "count"),
        ("Success Rate", f"{cloudlet_metrics.get('success_rate', 0):.2%}", "percentage"),
        ("Makespan", f"{cloudlet_metrics.get('makespan', 0):.2f}", "seconds"),
        ("Average Execution Time", f"{cloudlet_metrics.get('avg_execution_time', 0):.2f}", "seconds"),
        ("P95 Execution Time", f"{cloudlet_metrics.get('p95_execution_time', 0):.2f}", "seconds"),
        ("Total Cost", f"{cloudlet_metrics.get('total_cost', 0):.2f}", "currency"),
        ("Average CPU Utilization", f"{host_metrics.get('avg_cpu_utilization', 0):.2%}", "percentage"),
    ]

    for metric, value, unit in metrics:
        table.add_row(metric, value, unit)

    console.print(table)


def display_comparison_results(comparison: dict) -> None:
    """Display statistics of the headline metrics across runs."""

    table = Table(title="Run Comparison")
    table.add_column("Metric", style="cyan")
    for column in ("Mean", "Std", "Min", "Max"):
        table.add_column(column, style="green")

    for metric, stats in comparison.items():
        table.add_row(
            metric.replace('_', ' ').title(),
            f"{stats['mean']:.3f}",
            f"{stats['std']:.3f}",
            f"{stats['min']:.3f}",
            f"{stats['max']:.3f}",
        )

    console.print(table)


def _format_id(value) -> str:
    return "-" if pd.isna(value) else str(int(value))


def _format_time(value) -> str:
    return "-" if pd.isna(value) else f"{value:.2f}"


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
