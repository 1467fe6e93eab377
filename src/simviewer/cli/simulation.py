"""simviewer load / pick -- simulation commands."""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from simviewer.config import config
from simviewer.data.models import DatasetKind
from simviewer.data.simulation import Simulation
from simviewer.picking import Picker
from simviewer.services.girder import open_store

console = Console()


def _config_for(api_root: Optional[str]):
    if not api_root:
        return config
    return config.model_copy(update={"girder": config.girder.model_copy(update={"api_root": api_root})})


async def _load(simulation_id: str, api_root: Optional[str], progress: bool) -> Simulation:
    simulation = Simulation(simulation_id)
    async with open_store(_config_for(api_root)) as store:
        async for state in simulation.iter_refresh(store):
            if progress:
                counts = state.particle_counts()
                console.print(
                    f"  [cyan]timestep {len(simulation.time_steps) - 1}[/cyan]"
                    f" time={state.time if state.time is not None else '-'}"
                    f" spores={counts[DatasetKind.SPORE]}"
                    f" macrophages={counts[DatasetKind.MACROPHAGE]}"
                    f" neutrophils={counts[DatasetKind.NEUTROPHIL]}"
                )
    return simulation


def load_cmd(
    simulation_id: str = typer.Argument(..., help="Girder folder id of the simulation run"),
    api_root: Optional[str] = typer.Option(None, "--api-root", help="Girder API root URL"),
):
    """Load every available timestep of a simulation run."""
    try:
        simulation = asyncio.run(_load(simulation_id, api_root, progress=True))
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"Simulation {simulation.id} ({len(simulation.time_steps)}/{simulation.total_time_steps} loaded)")
    table.add_column("Step", justify="right", style="dim")
    table.add_column("Time", justify="right")
    table.add_column("Grid")
    table.add_column("Spores", justify="right")
    table.add_column("Macrophages", justify="right")
    table.add_column("Neutrophils", justify="right")

    for ordinal, state in enumerate(simulation.time_steps):
        counts = state.particle_counts()
        table.add_row(
            str(ordinal),
            "-" if state.time is None else str(state.time),
            "x".join(str(d) for d in state.geometry.dimensions),
            str(counts[DatasetKind.SPORE]),
            str(counts[DatasetKind.MACROPHAGE]),
            str(counts[DatasetKind.NEUTROPHIL]),
        )

    console.print(table)
    if simulation.pending:
        console.print(f"[yellow]{simulation.pending} timestep(s) not loaded yet[/yellow]")


def pick_cmd(
    simulation_id: str = typer.Argument(..., help="Girder folder id of the simulation run"),
    step: int = typer.Argument(..., help="Timestep ordinal"),
    kind: DatasetKind = typer.Argument(..., help="Particle population"),
    point_id: int = typer.Argument(..., help="Point id within the population"),
    api_root: Optional[str] = typer.Option(None, "--api-root", help="Girder API root URL"),
):
    """Show the field values of one particle."""
    try:
        simulation = asyncio.run(_load(simulation_id, api_root, progress=False))
        if not 0 <= step < len(simulation.time_steps):
            console.print(f"[red]Timestep {step} is not loaded ({len(simulation.time_steps)} available)[/red]")
            raise typer.Exit(code=1)
        info = Picker(simulation.time_steps[step], config.viewer.pick_scale).pick(kind, point_id)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"\n[bold cyan]{info['type']} #{info['id']}[/bold cyan] (timestep {step})")
    for name, value in info.items():
        if name in ("id", "type"):
            continue
        console.print(f"  {name:15s} {value}")
