"""CLI for the Program Engine.

Developer CLI that runs the engine offline against JSON files. Every
command reads its inputs from disk, calls the same pure entry points a
service would, and prints (or writes) the resulting JSON.

Input files:
- request:   GenerationRequest object
- templates: YAML/JSON file or directory of raw templates keyed by id
- catalog:   {"exercises": [...], "muscle_groups": [...]}
- snapshot:  ActiveProgramSnapshot object
- samples:   list of PerformanceSample objects
- sessions:  list of SessionRecord objects
"""

import json
from datetime import date
from pathlib import Path
from typing import Any, TypeVar

import typer
from loguru import logger
from pydantic import BaseModel, TypeAdapter, ValidationError
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from liftplan import __version__
from liftplan.config.settings import settings
from liftplan.core.logger import setup_logger
from liftplan.planning.errors import PlanningError
from liftplan.planning.generate import generate_program, preview_program
from liftplan.planning.normalize import normalize_templates
from liftplan.planning.schema.catalog import Catalog
from liftplan.planning.schema.program import ActiveProgramSnapshot, PerformanceSample, PreviewResult, SessionRecord
from liftplan.planning.schema.request import GenerationRequest
from liftplan.planning.template_loader import load_templates
from liftplan.plans.adaptation import adapt_next_week, apply_adaptation
from liftplan.plans.reschedule import RescheduleResult, auto_reschedule, restart_program

console = Console()

app = typer.Typer(
    name="liftplan",
    help="liftplan - Strength Program Generation & Adaptation Engine",
    add_completion=False,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

_samples_adapter = TypeAdapter(list[PerformanceSample])
_sessions_adapter = TypeAdapter(list[SessionRecord])


def _setup_logging(debug: bool = False) -> None:
    setup_logger(level="DEBUG" if debug else settings.log_level)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error:[/red] Could not read {path}: {e}", style="bold red")
        raise typer.Exit(1) from e


def _load_templates(path: Path) -> dict[int, object]:
    try:
        return load_templates(path)
    except OSError as e:
        console.print(f"[red]Error:[/red] Could not read {path}: {e}", style="bold red")
        raise typer.Exit(1) from e
    except PlanningError as e:
        _fail(e)
        return {}


def _load_model(model: type[ModelT], path: Path) -> ModelT:
    try:
        return model.model_validate(_read_json(path))
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid {model.__name__} in {path}", style="bold red")
        console.print(str(e))
        raise typer.Exit(1) from e


def _load_list(adapter: TypeAdapter, path: Path | None) -> list:
    if path is None:
        return []
    try:
        return adapter.validate_python(_read_json(path))
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid records in {path}", style="bold red")
        console.print(str(e))
        raise typer.Exit(1) from e


def _format_response(payload: object, pretty: bool = True) -> str:
    if pretty:
        return json.dumps(payload, indent=2, ensure_ascii=False)
    return json.dumps(payload, ensure_ascii=False)


def _emit(payload: object, output_file: Path | None, pretty: bool) -> None:
    text = _format_response(payload, pretty)
    if output_file is not None:
        output_file.write_text(text, encoding="utf-8")
        console.print(f"[green]Wrote {output_file}[/green]")
        return
    console.print(JSON(text))


def _fail(err: PlanningError) -> None:
    console.print(
        Panel(
            Text(err.code, style="bold red"),
            subtitle="\n".join(err.details),
            border_style="red",
        )
    )
    raise typer.Exit(1) from err


def _today(value: str | None) -> date:
    if value is None:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        console.print(f"[red]Error:[/red] --today must be YYYY-MM-DD, got {value!r}", style="bold red")
        raise typer.Exit(1) from e


def _print_preview(preview: PreviewResult) -> None:
    table = Table(title=f"Weekly sets (seed {preview.seed})")
    table.add_column("Muscle group")
    table.add_column("Sets", justify="right")
    for entry in preview.weekly_sets:
        table.add_row(entry.muscle_group, str(entry.sets))
    console.print(table)
    console.print(f"Recovery load: [bold]{preview.recovery_load}[/bold]  Removed slots: {preview.removed_slots}")
    for warning in preview.warnings:
        console.print(f"[yellow]! {warning.type}:[/yellow] {warning.message}")


def _reschedule_payload(result: RescheduleResult) -> dict[str, object]:
    return {
        "missed": result.missed,
        "rescheduled": result.rescheduled,
        "created": result.created,
        "restart_required": result.restart_required,
        "restart_reason": result.restart_reason,
        "sessions": [record.model_dump(mode="json") for record in result.sessions],
        "active_program": result.snapshot.model_dump(mode="json", by_alias=True),
    }


@app.command()
def version() -> None:
    """Print the engine version."""
    console.print(f"liftplan {__version__}")


@app.command()
def validate(
    templates: Path = typer.Option(..., "--templates", "-t", help="Templates file or directory (YAML or JSON)"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Validate and classify templates without generating anything."""
    _setup_logging(debug)
    raw = _load_templates(templates)
    try:
        normalized = normalize_templates(list(raw.values()))
    except PlanningError as e:
        _fail(e)
        return

    table = Table(title="Templates")
    table.add_column("Id", justify="right")
    table.add_column("Kind")
    table.add_column("Weeks", justify="right")
    for template_id, template in zip(raw, normalized):
        table.add_row(str(template_id), template.kind, str(template.weeks or settings.default_weeks))
    console.print(table)


@app.command()
def preview(
    request: Path = typer.Option(..., "--request", "-r", help="GenerationRequest JSON"),
    templates: Path = typer.Option(..., "--templates", "-t", help="Templates file or directory (YAML or JSON)"),
    catalog: Path = typer.Option(..., "--catalog", "-c", help="Catalog JSON"),
    today: str | None = typer.Option(None, "--today", help="Generation date (YYYY-MM-DD)"),
    as_json: bool = typer.Option(False, "--json", help="Print the preview contract as JSON"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Show the preview contract (weekly sets, recovery load, warnings)."""
    _setup_logging(debug)
    generation_request = _load_model(GenerationRequest, request)
    try:
        result = preview_program(
            generation_request,
            _load_templates(templates),
            _load_model(Catalog, catalog),
            today=_today(today),
        )
    except PlanningError as e:
        _fail(e)
        return

    if as_json:
        _emit(result.model_dump(mode="json", by_alias=True), None, pretty=True)
        return
    _print_preview(result)


@app.command()
def generate(
    request: Path = typer.Option(..., "--request", "-r", help="GenerationRequest JSON"),
    templates: Path = typer.Option(..., "--templates", "-t", help="Templates file or directory (YAML or JSON)"),
    catalog: Path = typer.Option(..., "--catalog", "-c", help="Catalog JSON"),
    existing: Path | None = typer.Option(None, "--existing", help="Current ActiveProgramSnapshot JSON"),
    today: str | None = typer.Option(None, "--today", help="Generation date (YYYY-MM-DD)"),
    output_file: Path | None = typer.Option(None, "--output", "-o", help="Write snapshot to file"),
    pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty print JSON output"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Generate a new active program snapshot."""
    _setup_logging(debug)
    current = _load_model(ActiveProgramSnapshot, existing) if existing is not None else None
    try:
        snapshot = generate_program(
            _load_model(GenerationRequest, request),
            _load_templates(templates),
            _load_model(Catalog, catalog),
            today=_today(today),
            existing=current,
        )
    except PlanningError as e:
        _fail(e)
        return

    logger.info(f"CLI generated plan {snapshot.plan_id} with {len(snapshot.schedule)} sessions")
    _emit(snapshot.model_dump(mode="json", by_alias=True), output_file, pretty)


@app.command()
def adapt(
    snapshot: Path = typer.Option(..., "--snapshot", "-s", help="ActiveProgramSnapshot JSON"),
    templates: Path = typer.Option(..., "--templates", "-t", help="Templates file or directory (YAML or JSON)"),
    catalog: Path = typer.Option(..., "--catalog", "-c", help="Catalog JSON"),
    samples: Path | None = typer.Option(None, "--samples", help="PerformanceSample list JSON"),
    today: str | None = typer.Option(None, "--today", help="Adaptation date (YYYY-MM-DD)"),
    output_file: Path | None = typer.Option(None, "--output", "-o", help="Write snapshot to file"),
    pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty print JSON output"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Adapt the next week from logged performance."""
    _setup_logging(debug)
    current = _load_model(ActiveProgramSnapshot, snapshot)
    try:
        result = adapt_next_week(
            current,
            _load_templates(templates),
            _load_model(Catalog, catalog),
            _load_list(_samples_adapter, samples),
            today=_today(today),
        )
    except PlanningError as e:
        _fail(e)
        return

    for decision in result.decisions:
        console.print(f"[cyan]-[/cyan] {decision}")
    updated = apply_adaptation(current, result)
    _emit(updated.model_dump(mode="json", by_alias=True), output_file, pretty)


@app.command()
def reschedule(
    snapshot: Path = typer.Option(..., "--snapshot", "-s", help="ActiveProgramSnapshot JSON"),
    sessions: Path = typer.Option(..., "--sessions", help="SessionRecord list JSON"),
    threshold: int | None = typer.Option(None, "--threshold", min=1, max=10, help="Missed sessions that trigger a restart"),
    today: str | None = typer.Option(None, "--today", help="Reschedule date (YYYY-MM-DD)"),
    output_file: Path | None = typer.Option(None, "--output", "-o", help="Write result to file"),
    pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty print JSON output"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Move missed sessions to the next free training days."""
    _setup_logging(debug)
    result = auto_reschedule(
        _load_model(ActiveProgramSnapshot, snapshot),
        _load_list(_sessions_adapter, sessions),
        today=_today(today),
        threshold=threshold,
    )
    if result.restart_required:
        console.print(f"[yellow]Restart recommended:[/yellow] {result.restart_reason}")
    _emit(_reschedule_payload(result), output_file, pretty)


@app.command()
def restart(
    snapshot: Path = typer.Option(..., "--snapshot", "-s", help="ActiveProgramSnapshot JSON"),
    templates: Path = typer.Option(..., "--templates", "-t", help="Templates file or directory (YAML or JSON)"),
    catalog: Path = typer.Option(..., "--catalog", "-c", help="Catalog JSON"),
    sessions: Path | None = typer.Option(None, "--sessions", help="SessionRecord list JSON"),
    hard: bool = typer.Option(False, "--hard", help="Hard restart (whole week and schedule)"),
    reshuffle: bool = typer.Option(False, "--reshuffle", help="Derive a new seed"),
    today: str | None = typer.Option(None, "--today", help="Restart date (YYYY-MM-DD)"),
    output_file: Path | None = typer.Option(None, "--output", "-o", help="Write result to file"),
    pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty print JSON output"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Restart the active program from the Monday of today."""
    _setup_logging(debug)
    try:
        result = restart_program(
            _load_model(ActiveProgramSnapshot, snapshot),
            _load_templates(templates),
            _load_model(Catalog, catalog),
            mode="hard" if hard else "soft",
            reshuffle=reshuffle,
            today=_today(today),
            sessions=_load_list(_sessions_adapter, sessions),
        )
    except PlanningError as e:
        _fail(e)
        return
    _emit(_reschedule_payload(result), output_file, pretty)


if __name__ == "__main__":
    app()
