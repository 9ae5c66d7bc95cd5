"""convoflow CLI - typer application entry point."""

from __future__ import annotations

import atexit
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from convoflow.config import (
    DEFAULT_CONFIG_FILENAME,
    PRESETS,
    ValidationConfigError,
    load_validation_config,
)
from convoflow.graph.errors import GraphIntegrityError
from convoflow.graph.flow_validation import validate as validate_graph
from convoflow.graph.graph import FlowGraph, read_document
from convoflow.observability import close_file_logging, configure_logging, get_logger
from convoflow.runtime.continuation import ContinuationPolicy

if TYPE_CHECKING:
    from convoflow.graph.validation_types import Finding, ValidationReport
    from convoflow.models.continuation import ContinuationConfig

# Load environment variables from .env file (CONVOFLOW_PRESET, ...)
load_dotenv()

app = typer.Typer(
    name="convoflow",
    help="convoflow: validate conversation flows and inspect their continuation policy.",
    no_args_is_help=True,
)
console = Console()

SEVERITY_STYLES = {
    "error": "[red]✗ error[/red]",
    "warning": "[yellow]! warning[/yellow]",
    "info": "[dim]i info[/dim]",
}


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            help="Also write debug logs as JSON lines to this file.",
        ),
    ] = None,
) -> None:
    """convoflow: validate conversation flows and inspect their continuation policy."""
    configure_logging(verbosity=verbose, log_file=log_file)
    if log_file is not None:
        atexit.register(close_file_logging)


def _load_flow(flow: Path) -> tuple[FlowGraph, ContinuationConfig | None]:
    """Load a flow document or exit with a readable error."""
    log = get_logger(__name__)
    try:
        document = read_document(flow)
        graph = FlowGraph.from_document(document)
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] Flow file not found: {flow}")
        raise typer.Exit(2) from None
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] {flow} is not valid JSON: {e}")
        raise typer.Exit(2) from None
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {flow} is not a flow document:")
        for err in e.errors():
            location = ".".join(str(p) for p in err["loc"])
            console.print(f"  [red]•[/red] {location}: {err['msg']}")
        raise typer.Exit(2) from None
    except GraphIntegrityError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2) from None
    log.debug("flow_loaded", path=str(flow), vertices=len(graph), edges=len(graph.edges))
    return graph, document.continuation


def _findings_table(title: str, findings: list[Finding]) -> Table:
    table = Table(title=title)
    table.add_column("Severity", style="bold")
    table.add_column("Id", style="cyan")
    table.add_column("Vertex", style="dim")
    table.add_column("Message")
    for finding in findings:
        table.add_row(
            SEVERITY_STYLES.get(finding.severity, finding.severity),
            finding.id,
            finding.vertex_id or "-",
            finding.message,
        )
    return table


def _print_report(flow: Path, report: ValidationReport) -> None:
    findings = report.findings
    if findings:
        console.print()
        console.print(_findings_table(f"Validation: {flow.name}", findings))
    console.print()
    if report.is_valid:
        console.print(f"[green]✓[/green] Flow is valid ({report.describe()})")
    else:
        console.print(f"[red]✗[/red] Flow is invalid ({report.describe()})")


@app.command()
def validate(
    flow: Annotated[Path, typer.Argument(help="Flow document (JSON).")],
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help=f"Validation profile (YAML). Defaults to ./{DEFAULT_CONFIG_FILENAME} if present.",
        ),
    ] = None,
    preset: Annotated[
        str | None,
        typer.Option("--preset", "-p", help="Validation preset to start from."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the report as JSON."),
    ] = False,
) -> None:
    """Validate a flow document. Exits with 1 when the flow has errors."""
    if config is None and Path(DEFAULT_CONFIG_FILENAME).exists():
        config = Path(DEFAULT_CONFIG_FILENAME)
    try:
        profile = load_validation_config(config, preset=preset)
    except ValidationConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2) from None

    graph, continuation = _load_flow(flow)
    report = validate_graph(graph, continuation=continuation, config=profile)

    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(flow, report)

    if not report.is_valid and profile.block_save_on_errors:
        raise typer.Exit(1)


@app.command()
def resolve(
    flow: Annotated[Path, typer.Argument(help="Flow document (JSON).")],
    vertex_id: Annotated[str, typer.Argument(help="Vertex that has no eligible edge.")],
    guard: Annotated[
        str | None,
        typer.Option("--guard", "-g", help="Id of the option or rule the input matched."),
    ] = None,
) -> None:
    """Show what the continuation policy does when VERTEX_ID has no eligible edge."""
    graph, continuation = _load_flow(flow)
    vertex = graph.get_vertex(vertex_id)
    if vertex is None:
        console.print(f"[red]Error:[/red] Vertex '{vertex_id}' not found in {flow}")
        raise typer.Exit(2)

    edge = graph.eligible_edge(vertex_id, guard)
    if edge is not None:
        console.print(
            f"[yellow]Note:[/yellow] {vertex_id} has an eligible edge "
            f"[cyan]{edge.id}[/cyan] → {edge.target_vertex_id}; "
            "the policy is only consulted when there is none."
        )

    transition = ContinuationPolicy(graph, continuation).resolve(vertex, guard)

    table = Table(title=f"Continuation for {vertex_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Requested", transition.requested)
    table.add_row("Strategy", transition.strategy)
    table.add_row("Target", transition.target_vertex_id or "-")
    table.add_row("Message", transition.message or "-")
    table.add_row("Delay", f"{transition.delay_seconds:g}s" if transition.is_delayed else "-")
    table.add_row("Reset session", "yes" if transition.reset_session else "no")
    if transition.fallback_reason:
        table.add_row("Fallback", f"[yellow]{transition.fallback_reason}[/yellow]")
    console.print()
    console.print(table)


@app.command()
def presets() -> None:
    """List the built-in validation presets."""
    base = PRESETS["default"].to_dict()
    table = Table(title="Validation presets")
    table.add_column("Preset", style="cyan", no_wrap=True)
    table.add_column("Settings")
    for name, preset in PRESETS.items():
        values = preset.to_dict()
        if name == "default":
            shown = values
        else:
            shown = {k: v for k, v in values.items() if v != base[k]}
        table.add_row(name, ", ".join(f"{k}={v}" for k, v in shown.items()))
    console.print()
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from convoflow import __version__

    console.print(f"convoflow v{__version__}")
