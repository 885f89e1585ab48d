"""Command-line interface for moving-mesh AMR runs.

Usage:
    mmhydro verify config.json
    mmhydro amr config.json --passes=3 --output=mesh.bin
    mmhydro inspect-mesh mesh.bin
"""

from __future__ import annotations

import logging
import sys

import click


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """mmhydro: moving Voronoi mesh with adaptive refinement."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _echo_summary(title: str, summary: dict) -> None:
    click.echo(f"\n--- {title} ---")
    for key, val in summary.items():
        if isinstance(val, float):
            click.echo(f"  {key}: {val:.6e}")
        else:
            click.echo(f"  {key}: {val}")


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
def verify(config_file: str) -> None:
    """Verify a configuration file is valid."""
    from mmhydro.config import SimulationConfig

    try:
        config = SimulationConfig.from_file(config_file)
        click.echo("Configuration is valid:")
        click.echo(f"  Box: {config.box.lower_left} -> {config.box.upper_right}")
        click.echo(f"  Boundaries: x={config.box.x_boundary}, y={config.box.y_boundary}")
        click.echo(f"  Mesh: {config.mesh.nx} x {config.mesh.ny}, perturbation={config.mesh.perturbation}")
        click.echo(f"  AMR: {config.amr.scheme}, placement={config.amr.placement}")
    except Exception as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--passes", type=int, default=1, show_default=True, help="Refine/remove passes to run.")
@click.option("--output", "-o", type=str, default=None, help="Write the final mesh as a binary snapshot.")
def amr(config_file: str, passes: int, output: str | None) -> None:
    """Build the initial mesh from a configuration file and run AMR passes on it."""
    from mmhydro.amr import DensityRefine, VolumeRemove, make_amr
    from mmhydro.config import SimulationConfig
    from mmhydro.core.bases import describe_extensive
    from mmhydro.simulation import HydroSim
    from mmhydro.tessellation.logger import BinLogger

    click.echo(f"Loading config from {config_file}")
    config = SimulationConfig.from_file(config_file)
    sim = HydroSim.from_config(config)
    driver = make_amr(
        config.amr,
        DensityRefine(config.amr.refine_density, config.amr.max_volume),
        VolumeRemove(config.amr.remove_volume),
    )

    before = describe_extensive(sim.totals())
    before["points"] = sim.tess.point_count
    for _ in range(passes):
        driver(sim)
    after = describe_extensive(sim.totals())
    after["points"] = sim.tess.point_count

    _echo_summary("Before", before)
    _echo_summary("After", after)

    if output:
        BinLogger(output).output(sim.tess)
        click.echo(f"\nMesh written to {output}")


@cli.command("inspect-mesh")
@click.argument("snapshot", type=click.Path(exists=True))
def inspect_mesh(snapshot: str) -> None:
    """Summarize a binary mesh snapshot."""
    from mmhydro.tessellation.logger import BinLogger

    try:
        data = BinLogger.read_full(snapshot)
    except (RuntimeError, ValueError) as exc:
        click.echo(f"Snapshot error: {exc}", err=True)
        sys.exit(1)

    points = data["points"]
    _echo_summary(
        "Snapshot",
        {
            "points": len(points),
            "edges": len(data["neighbors"]),
            "x_min": float(points[:, 0].min()) if len(points) else 0.0,
            "x_max": float(points[:, 0].max()) if len(points) else 0.0,
            "y_min": float(points[:, 1].min()) if len(points) else 0.0,
            "y_max": float(points[:, 1].max()) if len(points) else 0.0,
        },
    )


if __name__ == "__main__":
    cli()
