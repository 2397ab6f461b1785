"""Chancery CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
import json
from dataclasses import replace
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from ruamel.yaml import YAML

from chancery.observability import close_file_logging, configure_logging, get_logger

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="chancery",
    help="Chancery: turn player rulings into validated decision bundles.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

log = get_logger(__name__)


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
            help="Also write debug.jsonl to this directory.",
            envvar="CHANCERY_LOG_DIR",
        ),
    ] = None,
) -> None:
    """Chancery: turn player rulings into validated decision bundles."""
    configure_logging(verbosity=verbose, log_to_file=log_dir is not None, log_dir=log_dir)
    if log_dir is not None:
        atexit.register(close_file_logging)


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(1)


def _load_document(path: Path) -> Any:
    """Load a JSON or YAML document (chosen by file suffix)."""
    if not path.exists():
        raise _fail(f"File not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                return YAML(typ="safe").load(f)
            return json.load(f)
    except Exception as e:
        raise _fail(f"Could not read {path}: {e}") from e


def _load_model(path: Path, model_cls: Any) -> Any:
    try:
        return model_cls.model_validate(_load_document(path))
    except ValidationError as e:
        raise _fail(f"{path} is not a valid {model_cls.__name__}:\n{e}") from e


def _load_scenario(path: Path) -> Any:
    from chancery.decision.ids import normalize_scenario_geo_regions
    from chancery.models.scenario import Scenario

    raw, _ = normalize_scenario_geo_regions(_load_document(path))
    try:
        return Scenario.model_validate(raw)
    except ValidationError as e:
        raise _fail(f"{path} is not a valid Scenario:\n{e}") from e


def _print_report(report: Any) -> None:
    table = Table(title="Normalization report")
    table.add_column("Stage", style="cyan")
    table.add_column("Bundle")
    table.add_column("Action")
    table.add_column("Reason", style="yellow")
    for dropped in report.dropped:
        table.add_row(
            dropped.stage, str(dropped.bundle_index), dropped.action_type or "-", dropped.reason
        )
    err_console.print(table)
    err_console.print(report.summary())


def _parse_headers(values: list[str] | None) -> dict[str, str]:
    """Turn repeated ``Name: value`` options into a header mapping."""
    headers: dict[str, str] = {}
    for raw in values or []:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise _fail(f"Invalid header (expected 'Name: value'): {raw}")
        headers[name.strip()] = value.strip()
    return headers


@app.command()
def version() -> None:
    """Show version information."""
    from chancery import __version__

    console.print(f"Chancery v{__version__}")


@app.command()
def stabilize(
    keys: Annotated[list[str], typer.Argument(help="Region keys to stabilize.")],
) -> None:
    """Print the stable identifier for each region key."""
    from chancery.decision.ids import stabilize_region_key

    table = Table()
    table.add_column("Key", style="cyan")
    table.add_column("Identifier")
    for key in keys:
        table.add_row(key, stabilize_region_key(key))
    console.print(table)


@app.command()
def synthesize(
    task: Annotated[Path, typer.Argument(help="Task context (JSON or YAML).")],
    scenario: Annotated[Path, typer.Argument(help="Scenario (JSON or YAML).")],
    seed: Annotated[int, typer.Option("--seed", help="Game seed.")] = 0,
    turn: Annotated[int, typer.Option("--turn", help="Turn index.")] = 0,
    coerce: Annotated[
        bool, typer.Option("--coerce", help="Coerce the result against the scenario.")
    ] = False,
    limit_freeform: Annotated[
        bool, typer.Option("--limit-freeform", help="Tag freeform effects as limited.")
    ] = False,
    strict_actions: Annotated[
        bool, typer.Option("--strict-actions", help="Drop freeform effects when coercing.")
    ] = False,
) -> None:
    """Synthesize a deterministic decision for a task."""
    from chancery.decision.coerce import coerce_decision
    from chancery.decision.errors import SynthesisError
    from chancery.decision.synthesize import synthesize_decision
    from chancery.models.context import TaskContext
    from chancery.models.options import GameOptions

    task_context = _load_model(task, TaskContext)
    world = _load_scenario(scenario)

    try:
        result = synthesize_decision(task_context, world, seed, turn)
    except SynthesisError as e:
        raise _fail(str(e)) from e

    decision = result.decision
    if coerce:
        options = GameOptions(
            limit_freeform_deltas=limit_freeform, strict_actions_only=strict_actions
        )
        decision = coerce_decision(decision, world, task_context, options)

    console.print_json(data=decision.to_payload())


@app.command()
def normalize(
    raw: Annotated[Path, typer.Argument(help="Raw candidate decision (JSON).")],
    task: Annotated[Path, typer.Argument(help="Task context (JSON or YAML).")],
    text: Annotated[str, typer.Option("--text", help="Player decision text.")] = "",
    scenario: Annotated[
        Path | None, typer.Option("--scenario", help="Scenario to coerce against.")
    ] = None,
    limit_freeform: Annotated[
        bool, typer.Option("--limit-freeform", help="Tag freeform effects as limited.")
    ] = False,
    strict_actions: Annotated[
        bool, typer.Option("--strict-actions", help="Drop freeform effects when coercing.")
    ] = False,
    report: Annotated[
        bool, typer.Option("--report", help="Print the normalization report to stderr.")
    ] = False,
) -> None:
    """Normalize (and optionally coerce) a raw candidate decision."""
    from chancery.decision.bundles import normalize_decision
    from chancery.decision.coerce import coerce_decision
    from chancery.decision.report import NormalizationReport
    from chancery.models.context import TaskContext
    from chancery.models.options import GameOptions

    task_context = _load_model(task, TaskContext)
    candidate = _load_document(raw)
    normalization = NormalizationReport()

    decision = normalize_decision(candidate, task_context, text, normalization)
    if scenario is not None:
        options = GameOptions(
            limit_freeform_deltas=limit_freeform, strict_actions_only=strict_actions
        )
        decision = coerce_decision(
            decision, _load_scenario(scenario), task_context, options, report=normalization
        )

    console.print_json(data=decision.to_payload())
    if report:
        _print_report(normalization)


@app.command()
def parse(
    task: Annotated[Path, typer.Argument(help="Task context (JSON or YAML).")],
    text: Annotated[str, typer.Option("--text", "-t", help="Player decision text.")],
    scenario: Annotated[
        Path | None, typer.Option("--scenario", help="Scenario to coerce against.")
    ] = None,
    provider: Annotated[
        str | None,
        typer.Option("--provider", help="openai, openrouter, groq or ollama (default: config)."),
    ] = None,
    model: Annotated[str | None, typer.Option("--model", help="Model override.")] = None,
    header: Annotated[
        list[str] | None,
        typer.Option(
            "--header",
            "-H",
            help="Request header 'Name: value' (x-llm-provider, x-llm-api-key, "
            "x-llm-base-url, x-llm-model). Repeatable.",
        ),
    ] = None,
    config: Annotated[
        Path | None, typer.Option("--config", help="YAML config file.", envvar="CHANCERY_CONFIG")
    ] = None,
    report: Annotated[
        bool, typer.Option("--report", help="Print the normalization report to stderr.")
    ] = False,
) -> None:
    """Parse a player ruling with a language model."""
    from chancery.config import ConfigError, LLMRequestOverrides, load_config
    from chancery.decision.errors import DecisionParseError
    from chancery.decision.parser import DecisionParser
    from chancery.models.context import TaskContext
    from chancery.providers import ProviderError, create_decision_provider

    headers = _parse_headers(header)
    try:
        settings = load_config(config)
        overrides = LLMRequestOverrides.from_headers(headers, default_provider=settings.provider)
    except ConfigError as e:
        raise _fail(str(e)) from e

    # Explicit options beat headers
    if provider:
        overrides = replace(overrides, provider=provider.lower())
    if model:
        overrides = replace(overrides, model=model)

    task_context = _load_model(task, TaskContext)
    world = _load_scenario(scenario) if scenario is not None else None

    try:
        llm = create_decision_provider(
            overrides.provider,
            model=overrides.resolve_model(settings),
            api_key=overrides.api_key,
            base_url=overrides.base_url,
            temperature=settings.temperature,
        )
    except ProviderError as e:
        raise _fail(str(e)) from e

    parser = DecisionParser(llm, scenario=world, options=settings.game_options)
    try:
        decision, normalization = asyncio.run(parser.parse_with_report(task_context, text))
    except DecisionParseError as e:
        log.error("decision_parse_failed", attempts=e.attempts, errors=e.last_errors)
        raise _fail(f"{e} ({'; '.join(e.last_errors)})") from e

    console.print_json(data=decision.to_payload())
    if report:
        _print_report(normalization)


@app.command("scenario-ids")
def scenario_ids(
    scenario: Annotated[Path, typer.Argument(help="Scenario (JSON or YAML).")],
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write the result here.")
    ] = None,
) -> None:
    """Rewrite region keys in a scenario to stable identifiers."""
    from chancery.decision.ids import normalize_scenario_geo_regions

    normalized, changed = normalize_scenario_geo_regions(_load_document(scenario))
    payload = json.dumps(normalized, indent=2, ensure_ascii=False)

    if output is not None:
        output.write_text(payload + "\n", encoding="utf-8")
        err_console.print(f"Wrote {output} (changed: {str(changed).lower()})")
    else:
        console.print_json(payload)
        err_console.print(f"changed: {str(changed).lower()}")


if __name__ == "__main__":
    app()
