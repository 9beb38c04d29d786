"""Command-line interface for roofcalc."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
import yaml
from pydantic import ValidationError

from roofcalc import __version__


@click.group()
@click.version_option(version=__version__, prog_name="roofcalc")
def main() -> None:
    """roofcalc -- roofing quantity formulas and estimate pricing.

    Lifecycle: Measure -> Evaluate -> Price
    """


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _parse_overrides(overrides: tuple[str, ...]) -> dict[str, float]:
    params: dict[str, float] = {}
    for item in overrides:
        if "=" not in item:
            raise click.ClickException(f"Invalid --set format: {item!r}. Use NAME=VALUE.")
        k, v = item.split("=", 1)
        try:
            params[k.strip().upper()] = float(v)
        except ValueError:
            raise click.ClickException(f"Invalid --set value for {k}: {v!r} is not a number.")
    return params


def _load_variables(vars_file: str | None, overrides: tuple[str, ...]) -> Any:
    """Build ``RoofVariables`` from an optional YAML/JSON file plus ``--set`` pairs.

    ``--set`` names may be flat fields (``SQ=25``) or slope references
    (``F1SQ=12.5``).
    """
    from roofcalc.formulas.evaluator import SLOPE_REF_RE
    from roofcalc.variables import SLOPE_FIELDS, as_roof_variables, normalize_variables_mapping

    data: dict[str, Any] = {}
    if vars_file:
        loaded = yaml.safe_load(Path(vars_file).read_text()) or {}
        if not isinstance(loaded, dict):
            raise click.ClickException(f"{vars_file} must contain a mapping of variables")
        data = normalize_variables_mapping(loaded)

    slopes: dict[str, Any] = dict(data.get("slopes") or {})
    for name, value in _parse_overrides(overrides).items():
        m = SLOPE_REF_RE.match(name)
        if m and m.group(2) in SLOPE_FIELDS:
            slope = dict(slopes.get(m.group(1)) or {})
            slope[m.group(2)] = value
            slopes[m.group(1)] = slope
        else:
            data[name] = value
    if slopes:
        data["slopes"] = slopes

    try:
        return as_roof_variables(data)
    except ValidationError as e:
        raise click.ClickException(f"Invalid variables:\n{e}")


def _echo_events(events: list[dict[str, Any]]) -> None:
    for evt in events:
        ts = evt.get("ts", "")
        lvl = evt.get("level", "").upper()
        etype = evt.get("event_type", "")
        msg = evt.get("message", "")
        err = evt.get("error_code")
        line = f"[{ts}] {lvl:7s} {etype}: {msg}"
        if err:
            line += f"  ({err})"
        click.echo(line)


# ---------------------------------------------------------------------------
# Formulas
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("formula")
@click.option("--vars", "vars_file", default=None, type=click.Path(exists=True), help="YAML/JSON file of roof variables.")
@click.option("--set", "overrides", multiple=True, help="Set a variable as NAME=VALUE.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def eval_cmd(formula: str, vars_file: str | None, overrides: tuple[str, ...], as_json: bool) -> None:
    """Evaluate FORMULA against roof variables."""
    from roofcalc.formulas import FormulaError, evaluate

    variables = _load_variables(vars_file, overrides)
    try:
        value = evaluate(formula, variables)
    except FormulaError as e:
        if as_json:
            click.echo(json.dumps({"formula": formula, "error": str(e), "kind": e.kind}, indent=2))
        else:
            click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    if as_json:
        click.echo(json.dumps({"formula": formula, "value": value}, indent=2))
    else:
        click.echo(f"{value:.10g}")


@main.command("validate")
@click.argument("formula")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def validate_cmd(formula: str, as_json: bool) -> None:
    """Check FORMULA syntax and list the variables it needs."""
    from roofcalc.formulas import format_formula, validate

    result = validate(formula)
    if as_json:
        click.echo(json.dumps({
            "valid": result.valid,
            "required_variables": result.required_variables,
            "error": result.error,
        }, indent=2))
    elif result.valid:
        click.echo(f"OK: {format_formula(formula)}")
        if result.required_variables:
            click.echo(f"Variables: {', '.join(result.required_variables)}")
    else:
        click.echo(f"Invalid: {result.error}", err=True)

    if not result.valid:
        sys.exit(2)


# ---------------------------------------------------------------------------
# Variables
# ---------------------------------------------------------------------------


@main.command("variables")
@click.option("--length", "length_ft", required=True, type=float, help="Building length in feet.")
@click.option("--width", "width_ft", required=True, type=float, help="Building width in feet.")
@click.option("--pitch", required=True, type=float, help="Roof pitch (rise per 12 run).")
@click.option("--skylights", default=0, type=int, help="Number of skylights.")
@click.option("--chimneys", default=0, type=int, help="Number of chimneys.")
@click.option("--pipe-boots", default=2, type=int, help="Number of pipe boots.")
@click.option("--vents", default=0, type=int, help="Number of vents.")
@click.option("--gutter-lf", default=None, type=float, help="Gutter length (defaults to eave length).")
@click.option("--downspouts", default=2, type=int, help="Number of downspouts.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def variables_cmd(
    length_ft: float,
    width_ft: float,
    pitch: float,
    skylights: int,
    chimneys: int,
    pipe_boots: int,
    vents: int,
    gutter_lf: float | None,
    downspouts: int,
    as_json: bool,
) -> None:
    """Estimate roof variables for a simple gable roof."""
    from roofcalc.variables import (
        calculate_variables_from_dimensions,
        format_variables_for_display,
        validate_variables,
    )

    variables = calculate_variables_from_dimensions(
        length_ft,
        width_ft,
        pitch,
        skylights=skylights,
        chimneys=chimneys,
        pipe_boots=pipe_boots,
        vents=vents,
        gutter_lf=gutter_lf,
        downspouts=downspouts,
    )

    if as_json:
        click.echo(json.dumps(variables.model_dump(mode="json"), indent=2))
        return

    for label, value in format_variables_for_display(variables).items():
        click.echo(f"{label:15s} {value}")
    for warning in validate_variables(variables).warnings:
        click.echo(f"Warning: {warning}", err=True)


# ---------------------------------------------------------------------------
# Estimate
# ---------------------------------------------------------------------------


@main.command("estimate")
@click.argument("spec_file", type=click.Path(exists=True))
@click.option("--project", "directory", default=None, type=click.Path(exists=True), help="Project directory (config and logs).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def estimate_cmd(spec_file: str, directory: str | None, as_json: bool) -> None:
    """Price the estimate described by SPEC_FILE."""
    from roofcalc.estimate import load_estimate_spec, run_estimate
    from roofcalc.pricing import format_currency, format_quantity

    try:
        spec, raw = load_estimate_spec(Path(spec_file))
        result = run_estimate(spec, Path(directory) if directory else None, raw=raw)
    except ValueError as e:
        raise click.ClickException(str(e))

    calc = result.calculation
    if as_json:
        click.echo(json.dumps({
            "estimate_id": result.estimate_id,
            "calculation": calc.model_dump(mode="json"),
            "summary": result.summary.model_dump(mode="json"),
            "warnings": result.variables_check.warnings,
            "errors": result.variables_check.errors,
        }, indent=2))
        return

    click.echo(f"Estimate {result.estimate_id}")
    for li in calc.line_items:
        flag = "" if li.is_included else " (excluded)"
        if li.is_optional:
            flag += " (optional)"
        click.echo(
            f"  {li.item_code:12s} {li.name[:32]:32s} "
            f"{format_quantity(li.quantity_with_waste, li.unit_type):>14s} "
            f"{format_currency(li.line_total):>12s}{flag}"
        )
        if li.formula_error:
            click.echo(f"    fallback: {li.formula_error}")
    click.echo(f"Subtotal:  {format_currency(calc.subtotal)}")
    click.echo(f"Overhead:  {format_currency(calc.overhead_amount)} ({calc.overhead_percent:g}%)")
    click.echo(f"Profit:    {format_currency(calc.profit_amount)} ({calc.profit_percent:g}%)")
    click.echo(f"Tax:       {format_currency(calc.tax_amount)} ({calc.tax_percent:g}%)")
    click.echo(
        f"Price:     {format_currency(calc.price_likely)} "
        f"(range {format_currency(calc.price_low)} - {format_currency(calc.price_high)})"
    )
    click.echo(f"Per square: {format_currency(result.summary.cost_per_square)}")
    for warning in result.variables_check.warnings:
        click.echo(f"Warning: {warning}", err=True)
    for error in result.variables_check.errors:
        click.echo(f"Error: {error}", err=True)


# ---------------------------------------------------------------------------
# New
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", type=click.Path())
def new(directory: str) -> None:
    """Scaffold a new project at DIRECTORY."""
    from roofcalc.project import scaffold_project

    try:
        result = scaffold_project(Path(directory))
        click.echo(f"Created project at {result}")
    except FileExistsError as e:
        raise click.ClickException(str(e))


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.argument("directory", type=click.Path(exists=True))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--estimate", "estimate_id", default=None, help="Filter by estimate ID.")
@click.option("--limit", default=100, type=int, help="Maximum events to show.")
def events_cmd(
    directory: str,
    level: str | None,
    event_type: str | None,
    estimate_id: str | None,
    limit: int,
) -> None:
    """Show structured event log for DIRECTORY."""
    from roofcalc.logging.sink import EventSink

    sink = EventSink(Path(directory))
    events = sink.query(
        level=level,
        event_type=event_type,
        estimate_id=estimate_id,
        limit=limit,
    )

    if not events:
        click.echo("No events found.")
        return
    _echo_events(events)


@main.command("estimate-log")
@click.argument("directory", type=click.Path(exists=True))
@click.argument("estimate_id")
def estimate_log_cmd(directory: str, estimate_id: str) -> None:
    """Show event log for a specific estimate."""
    from roofcalc.logging.sink import EventSink

    sink = EventSink(Path(directory))
    events = sink.estimate_events(estimate_id)

    if not events:
        click.echo(f"No events found for estimate {estimate_id}.")
        return
    _echo_events(events)


if __name__ == "__main__":
    main()
