"""
rctdprobe command line interface.

Commands:
    rctdprobe run    - Run the experiment and print every table
    rctdprobe env    - Print the environment/version report
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from pydantic import ValidationError
from rich.console import Console

from ..models.data import (
    ComparisonParameters,
    DeconvolutionParameters,
    ExperimentParameters,
    ScenarioParameters,
)
from ..utils.dependency_manager import get_environment_report
from ..utils.exceptions import RCTDProbeError
from ..utils.output_utils import dataframe_to_table, mapping_to_table

console = Console()


def print_environment_report(report: Dict[str, Any], out: Console = console) -> None:
    """Render the environment report as tables."""
    out.print(
        mapping_to_table(
            {
                "python": report["python_version"],
                "platform": report["platform"],
                **{
                    f"R: {k}": v if v is not None else "unavailable"
                    for k, v in report.get("r", {}).items()
                },
            },
            title="Environment",
        )
    )
    packages = {}
    for section in ("critical_dependencies", "optional_dependencies"):
        for name, info in report[section].items():
            packages[name] = (
                info["version_or_error"] if info["available"] else "not installed"
            )
    out.print(mapping_to_table(packages, title="Packages", key_name="package"))


def print_experiment_report(result, out: Console = console) -> None:
    """Raw weights, both hypotheses, normalized weights, then the verdict."""
    out.print(dataframe_to_table(result.weights, f"Weights ({result.deconvolution.method})"))
    out.print(dataframe_to_table(result.cell_fraction, "Cell-fraction hypothesis"))
    out.print(dataframe_to_table(result.rna_proportion, "RNA-proportion hypothesis"))
    out.print(dataframe_to_table(result.normalized_weights, "Normalized weights"))

    interpretation = result.interpretation
    summary = {
        f"{name}: max |diff|": f"{c.max_abs_diff:.4f}"
        for name, c in interpretation.comparisons.items()
    }
    summary.update(
        {
            f"{name}: spots outside tolerance": ", ".join(c.spots_outside_tolerance)
            or "-"
            for name, c in interpretation.comparisons.items()
        }
    )
    summary["max row-sum deviation"] = (
        f"{interpretation.normalization.max_deviation:.4f}"
    )
    summary["skewed spots"] = ", ".join(interpretation.skewed_spots) or "-"
    summary["skewed spots reject cell fraction"] = interpretation.skewed_spots_separate
    summary["verdict"] = interpretation.verdict
    out.print(mapping_to_table(summary, title="Comparison"))


@click.group()
def cli():
    """rctdprobe - what do RCTD weights mean?"""
    pass


@cli.command()
@click.option(
    "--method",
    type=click.Choice(["rctd", "nnls"]),
    default="rctd",
    help="Deconvolution backend",
)
@click.option(
    "--mode",
    type=click.Choice(["full", "doublet", "multi"]),
    default="full",
    help="RCTD mode",
)
@click.option("--max-cores", default=1, show_default=True, help="RCTD worker count")
@click.option(
    "--replicates",
    default=2,
    show_default=True,
    help="Reference cells per cell type",
)
@click.option(
    "--cell-min-instance",
    default=2,
    show_default=True,
    help="RCTD CELL_MIN_INSTANCE override",
)
@click.option(
    "--tolerance",
    default=0.05,
    show_default=True,
    help="Absolute per-entry tolerance for a hypothesis match",
)
@click.option(
    "--normalized", is_flag=True, help="Compare row-normalized weights instead"
)
@click.option(
    "--plot",
    "plot_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Save comparison heatmaps to this file",
)
@click.option(
    "--json",
    "json_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the run summary as JSON",
)
@click.option("--no-env", is_flag=True, help="Skip the environment report")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default="WARNING",
    help="Logging level",
)
def run(
    method: str,
    mode: str,
    max_cores: int,
    replicates: int,
    cell_min_instance: int,
    tolerance: float,
    normalized: bool,
    plot_path: Optional[Path],
    json_path: Optional[Path],
    no_env: bool,
    log_level: str,
):
    """Run the weight-interpretation experiment."""
    logging.basicConfig(level=getattr(logging, log_level))

    from ..tools.experiment import run_weight_interpretation

    try:
        params = ExperimentParameters(
            scenario=ScenarioParameters(n_replicates=replicates),
            deconvolution=DeconvolutionParameters(
                method=method,
                rctd_mode=mode,
                max_cores=max_cores,
                rctd_cell_min_instance=cell_min_instance,
            ),
            comparison=ComparisonParameters(
                tolerance=tolerance, compare_normalized=normalized
            ),
        )
    except ValidationError as e:
        raise click.BadParameter(str(e)) from e

    try:
        result = run_weight_interpretation(params, include_environment=not no_env)
    except RCTDProbeError as e:
        click.echo(f"Error: {type(e).__name__}: {e}", err=True)
        sys.exit(1)

    print_experiment_report(result)
    if result.environment is not None:
        print_environment_report(result.environment)

    if plot_path is not None:
        from ..tools.visualization import plot_weight_comparison

        plot_weight_comparison(result, plot_path)
        click.echo(f"Figure written to {plot_path}")

    if json_path is not None:
        json_path.parent.mkdir(parents=True, exist_ok=True)
        json_path.write_text(result.summary().model_dump_json(indent=2))
        click.echo(f"Summary written to {json_path}")


@cli.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.option("--no-r", is_flag=True, help="Do not probe the R installation")
def env(output_format: str, no_r: bool):
    """Print the environment/version report."""
    report = get_environment_report(include_r=not no_r)
    if output_format == "json":
        click.echo(json.dumps(report, indent=2))
    else:
        print_environment_report(report)


def main():
    """Main entry point for the rctdprobe CLI"""
    cli()
