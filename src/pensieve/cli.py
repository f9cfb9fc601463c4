"""Pensieve CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from pensieve.config import EngineConfigError, load_engine_config
from pensieve.errors import StructuralError
from pensieve.models.pathway import Pathway, RuntimeContext
from pensieve.observability import (
    LoggingTimingSink,
    close_file_logging,
    configure_logging,
)
from pensieve.provider import InMemoryDataProvider, load_document
from pensieve.validation.catalog import CONDITION_TYPES
from pensieve.validation.orchestrator import PathwayValidator

if TYPE_CHECKING:
    from pensieve.config import EngineConfig
    from pensieve.validation.types import ValidationReport

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="pensieve",
    help="Pensieve: pathway validation and dependency-conflict engine.",
    no_args_is_help=True,
)
console = Console()

EXIT_INVALID = 1
EXIT_INPUT_ERROR = 2

SEVERITY_STYLES = {
    "critical": "red",
    "error": "red",
    "major": "yellow",
    "warning": "yellow",
    "minor": "dim",
    "info": "dim",
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
    log_dir: Annotated[
        Path | None,
        typer.Option(
            "--log-dir",
            help="Also write structured logs to {log_dir}/validation.jsonl.",
            envvar="PENSIEVE_LOG_DIR",
        ),
    ] = None,
) -> None:
    """Pensieve: pathway validation and dependency-conflict engine."""
    configure_logging(verbosity=verbose, log_to_file=log_dir is not None, log_dir=log_dir)
    if log_dir is not None:
        atexit.register(close_file_logging)


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(EXIT_INPUT_ERROR)


def _load_config(config: Path | None) -> EngineConfig:
    try:
        return load_engine_config(config)
    except EngineConfigError as e:
        raise _fail(str(e)) from e


def _load_provider(snapshot: Path) -> InMemoryDataProvider:
    try:
        return InMemoryDataProvider.from_file(snapshot)
    except StructuralError as e:
        raise _fail(f"Invalid snapshot: {e}") from e


def _load_pathway(path: Path) -> Pathway:
    try:
        return Pathway.model_validate(load_document(path))
    except StructuralError as e:
        raise _fail(f"Invalid pathway: {e}") from e
    except ValidationError as e:
        raise _fail(f"Invalid pathway: {e.errors()[0]['msg']}") from e


def _print_json(data: dict[str, Any]) -> None:
    console.print_json(json.dumps(data, default=str))


def _print_report(report: ValidationReport) -> None:
    verdict = "[green]✓ valid[/green]" if report.is_valid else "[red]✗ invalid[/red]"
    console.print()
    console.print(f"Pathway ({report.fandom_id}): {verdict}")
    console.print(
        f"  Complexity: [bold]{report.complexity}[/bold]  Score: [bold]{report.score}[/bold]"
    )
    if report.incomplete:
        console.print("  [yellow]Incomplete: one or more phases timed out[/yellow]")

    findings = [
        (v.severity, v.rule, v.message, v.phase) for v in report.violations
    ] + [(c.severity, c.type, c.message, c.heuristic) for c in report.conflicts]
    if findings:
        table = Table(title="Findings")
        table.add_column("Severity", style="bold")
        table.add_column("Rule", style="cyan")
        table.add_column("Message")
        table.add_column("Source", style="dim")
        for severity, rule, message, source in findings:
            style = SEVERITY_STYLES.get(severity, "")
            label = f"[{style}]{severity}[/{style}]" if style else severity
            table.add_row(label, rule, message, source)
        console.print(table)

    for warning in report.warnings:
        console.print(f"  [yellow]![/yellow] {warning.message}")
    for suggestion in report.suggestions:
        console.print(f"  [dim]→ {suggestion.message}[/dim]")

    timings = ", ".join(f"{t.phase} {t.duration_ms:.1f}ms" for t in report.timings)
    console.print(f"  [dim]Timings: {timings}[/dim]")
    console.print()


@app.command()
def validate(
    snapshot: Annotated[Path, typer.Argument(help="Entity snapshot (YAML or JSON).")],
    pathway_file: Annotated[Path, typer.Argument(help="Pathway to validate (YAML or JSON).")],
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Engine config YAML."),
    ] = None,
    timeout_ms: Annotated[
        float | None,
        typer.Option("--timeout-ms", help="Abort unfinished phases after this many ms."),
    ] = None,
    concurrent: Annotated[
        bool,
        typer.Option("--concurrent", help="Run rule phases concurrently."),
    ] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print the report as JSON.")] = False,
) -> None:
    """Validate a pathway against a fandom snapshot."""
    engine_config = _load_config(config)
    provider = _load_provider(snapshot)
    pathway = _load_pathway(pathway_file)

    validator = PathwayValidator(provider, engine_config, LoggingTimingSink())
    if concurrent:
        report = asyncio.run(validator.validate_pathway_async(pathway, timeout_ms=timeout_ms))
    else:
        report = validator.validate_pathway(pathway, timeout_ms=timeout_ms)

    if as_json:
        _print_json(report.to_dict())
    else:
        _print_report(report)

    if not report.is_valid:
        raise typer.Exit(EXIT_INVALID)


def _parse_edge(value: str) -> tuple[str, str]:
    source, sep, target = value.partition(":")
    if not sep or not source or not target:
        raise typer.BadParameter("expected SOURCE:TARGET", param_hint="--propose")
    return source, target


@app.command()
def graph(
    snapshot: Annotated[Path, typer.Argument(help="Entity snapshot (YAML or JSON).")],
    fandom: Annotated[str, typer.Argument(help="Fandom ID to audit.")],
    propose: Annotated[
        str | None,
        typer.Option("--propose", "-p", help="Pre-check a new prerequisite, as SOURCE:TARGET."),
    ] = None,
    block: Annotated[
        str | None,
        typer.Option("--block", "-b", help="Only show dependencies of this plot block."),
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the audit as JSON.")] = False,
) -> None:
    """Audit a fandom's plot-block dependency graph."""
    provider = _load_provider(snapshot)
    edge = _parse_edge(propose) if propose else None
    report = PathwayValidator(provider).validate_condition_graph(fandom, edge, block)

    if as_json:
        _print_json(report.to_dict())
    else:
        console.print()
        if report.has_circular_dependencies:
            console.print(f"[red]✗[/red] {len(report.circular_paths)} circular dependencies")
            for path, entry in zip(report.circular_paths, report.resolutions, strict=True):
                console.print(f"  [red]•[/red] {' → '.join(path)}")
                if entry["options"]:
                    console.print(f"    [dim]fix: {entry['options'][0]['description']}[/dim]")
        else:
            console.print("[green]✓[/green] No circular dependencies")

        table = Table(title=f"Dependencies: {fandom}")
        table.add_column("Block", style="cyan")
        table.add_column("Depends on")
        table.add_column("All dependencies", style="dim")
        table.add_column("Dependents", style="dim")
        for node, direct in report.direct_dependencies.items():
            table.add_row(
                node,
                ", ".join(direct) or "-",
                ", ".join(report.all_dependencies.get(node, [])) or "-",
                ", ".join(report.dependents.get(node, [])) or "-",
            )
        console.print(table)

        for warning in report.warnings:
            console.print(f"  [yellow]![/yellow] {warning}")
        if edge is not None:
            if report.proposed_edge_accepted:
                console.print(f"[green]✓[/green] {edge[0]} → {edge[1]} can be added")
            else:
                cycle = " → ".join(report.proposed_edge_cycle)
                console.print(f"[red]✗[/red] {edge[0]} → {edge[1]} would close: {cycle}")
        console.print()

    if report.has_circular_dependencies or report.proposed_edge_accepted is False:
        raise typer.Exit(EXIT_INVALID)


@app.command()
def conditions(
    snapshot: Annotated[
        Path | None,
        typer.Argument(help="Entity snapshot; omit to list condition types."),
    ] = None,
    fandom: Annotated[str | None, typer.Option("--fandom", "-f", help="Fandom ID.")] = None,
    block: Annotated[
        str | None,
        typer.Option("--block", "-b", help="Plot block whose conditions are evaluated."),
    ] = None,
    context_file: Annotated[
        Path | None,
        typer.Option("--context", help="Runtime context (YAML or JSON)."),
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print results as JSON.")] = False,
) -> None:
    """List condition types, or evaluate a plot block's conditions."""
    if snapshot is None:
        table = Table(title="Condition types")
        table.add_column("Type", style="cyan")
        table.add_column("Operators")
        table.add_column("Value")
        table.add_column("Description", style="dim")
        for info in CONDITION_TYPES:
            table.add_row(
                info.name,
                ", ".join(op.name for op in info.operators),
                info.value_type,
                info.description,
            )
        console.print(table)
        return

    if fandom is None or block is None:
        raise _fail("--fandom and --block are required when a snapshot is given.")

    provider = _load_provider(snapshot)
    context = RuntimeContext()
    if context_file is not None:
        try:
            context = RuntimeContext.model_validate(load_document(context_file))
        except (StructuralError, ValidationError) as e:
            raise _fail(f"Invalid context: {e}") from e

    try:
        evaluation = PathwayValidator(provider).evaluate_conditions(fandom, block, context)
    except StructuralError as e:
        raise _fail(f"Malformed condition: {e}") from e

    if as_json:
        _print_json(evaluation.to_dict())
    else:
        summary = evaluation.summary
        console.print()
        for result in evaluation.conditions:
            icon = "[green]✓[/green]" if result.valid else "[red]✗[/red]"
            console.print(
                f"  {icon} {result.condition_id} ({result.condition_type}): {result.message}"
            )
        console.print(f"  {summary['passed']}/{summary['total_conditions']} conditions met")
        console.print()

    if not evaluation.valid:
        raise typer.Exit(EXIT_INVALID)


@app.command()
def version() -> None:
    """Show version information."""
    from pensieve import __version__

    console.print(f"Pensieve v{__version__}")
