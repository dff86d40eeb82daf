"""
Thermal bridging CLI.

Command-line interface for thermal bridge identification and derating.

Usage:
    tbd process building.json --psi-set "efficient (BETBG)" -o results.json
    tbd psi-sets
    tbd khi-sets
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .bridging.psi import KhiLibrary, PsiLibrary
from .core.log import Severity
from .core.models import BuildingInput, ProcessResult
from .pipeline import process
from .utils.logging_config import setup_logging

app = typer.Typer(
    name="tbd",
    help="Thermal bridging and derating of building envelope surfaces",
    add_completion=False,
)
console = Console()

STATUS_STYLES = {
    Severity.DEBUG.tag: "dim",
    Severity.INFO.tag: "green",
    Severity.WARN.tag: "yellow",
    Severity.ERROR.tag: "red",
    Severity.FATAL.tag: "bold red",
}


def load_building(input_file: Path) -> BuildingInput:
    """Load and validate a building JSON file."""
    with open(input_file) as f:
        return BuildingInput.model_validate(json.load(f))


def print_result(result: ProcessResult) -> None:
    """Surface, edge and log tables."""
    table = Table(title="Derated Surfaces")
    table.add_column("Surface", style="cyan")
    table.add_column("Area (m²)", justify="right")
    table.add_column("Heat loss (W/K)", justify="right")
    table.add_column("Ratio (%)", justify="right")
    table.add_column("R before → after", justify="right")
    for s in result.surfaces:
        table.add_row(
            s.id,
            f"{s.net_area:.2f}",
            f"{s.heat_loss:.3f}",
            f"{s.ratio:.1f}" if s.ratio is not None else "-",
            f"{s.r_before:.3f} → {s.r_after:.3f}" if s.r_before is not None else "-",
        )
    console.print(table)

    totals: dict = {}
    for edge in result.edges:
        if edge.type is None:
            continue
        length, loss = totals.get(edge.type, (0.0, 0.0))
        totals[edge.type] = (length + edge.length, loss + edge.loss)

    table = Table(title="Thermal Bridges")
    table.add_column("Type", style="cyan")
    table.add_column("Length (m)", justify="right")
    table.add_column("Loss (W/K)", justify="right")
    for psi_type, (length, loss) in sorted(totals.items(), key=lambda kv: -kv[1][1]):
        table.add_row(psi_type, f"{length:.2f}", f"{loss:.3f}")
    console.print(table)

    for upr in result.uprates:
        uo = f"{upr.uo:.3f}" if upr.uo is not None else "unattainable"
        console.print(
            f"[cyan]Uprate {upr.surface_type.value}[/cyan]: Ut {upr.ut:.3f} → Uo {uo} W/m²K"
        )

    for entry in result.log:
        style = STATUS_STYLES.get(entry["level"], "white")
        console.print(f"[{style}]{entry['level']:<8}[/{style}] {entry['message']}")

    style = STATUS_STYLES.get(result.status, "white")
    console.print(Panel.fit(f"Status: [{style}]{result.status}[/{style}]", border_style=style))


@app.command("process")
def process_command(
    input_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Building JSON file"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write results as JSON"),
    psi_set: Optional[str] = typer.Option(None, "--psi-set", help="PSI set name"),
    khi_set: Optional[str] = typer.Option(None, "--khi-set", help="KHI set name"),
    tolerance: Optional[float] = typer.Option(None, "--tolerance", help="Vertex merge radius (m)"),
    parapet: Optional[bool] = typer.Option(
        None, "--parapet/--no-parapet", help="Tag wall/roof edges as parapets"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Console log level"),
):
    """
    Identify thermal bridges and derate envelope surfaces.
    """
    setup_logging(log_level)

    try:
        building = load_building(input_file)
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Invalid building file:[/red] {e}")
        raise typer.Exit(code=1)

    overrides = {
        "psi_set": psi_set,
        "khi_set": khi_set,
        "tolerance": tolerance,
        "parapet": parapet,
    }
    options = building.options.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )

    console.print(Panel.fit(
        f"[bold blue]Thermal bridging[/bold blue]\n"
        f"{len(building.surfaces)} surfaces, {len(building.shades)} shades",
        border_style="blue"
    ))

    result = process(building.surfaces, building.shades, options)
    print_result(result)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result.model_dump_json(indent=2))
        console.print(f"\n[green]Saved to {output}[/green]")

    if result.status == Severity.FATAL.tag:
        raise typer.Exit(code=2)


@app.command("psi-sets")
def psi_sets(
    name: Optional[str] = typer.Argument(None, help="Show the values of one set"),
):
    """List built-in PSI sets, or the values of one set."""
    library = PsiLibrary()
    if name is None:
        table = Table(title="PSI Sets")
        table.add_column("Name", style="cyan")
        table.add_column("Types", justify="right")
        table.add_column("Complete")
        for set_name in library.names:
            complete = library.is_complete(set_name)
            table.add_row(set_name, str(len(library.get(set_name))), "yes" if complete else "[red]no[/red]")
        console.print(table)
        return

    if name not in library:
        console.print(f"[red]Unknown PSI set '{name}'[/red]")
        raise typer.Exit(code=1)
    table = Table(title=name)
    table.add_column("Type", style="cyan")
    table.add_column("PSI (W/K.m)", justify="right")
    for psi_type, value in library.get(name).items():
        table.add_row(psi_type, f"{value:.3f}")
    console.print(table)


@app.command("khi-sets")
def khi_sets():
    """List built-in KHI (point bridge) sets."""
    library = KhiLibrary()
    table = Table(title="KHI Sets")
    table.add_column("Name", style="cyan")
    table.add_column("Points (W/K)")
    for set_name in library.names:
        values = ", ".join(f"{k}={v:.3f}" for k, v in library.get(set_name).items())
        table.add_row(set_name, values)
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from . import __version__
    console.print(f"thermal-bridging v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
