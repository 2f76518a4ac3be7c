"""Command-line interface for gridcalc."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from gridcalc import __core_api_version__, __version__


@click.group()
@click.version_option(
    version=f"{__version__} (core_api={__core_api_version__})",
    prog_name="gridcalc",
)
def main() -> None:
    """gridcalc -- spreadsheet formula engine.

    Parse formulas, evaluate sheet files, explain cells and apply edits
    with incremental recalculation.
    """


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _open_sheet(sheet_file: str) -> tuple[Any, Any, dict[str, Any]]:
    """Load config, configure logging and read the sheet.

    The project directory is the directory containing the sheet file.
    """
    from gridcalc.engine import Engine
    from gridcalc.project import configure_logging, load_project_config
    from gridcalc.sheet_io import load_sheet

    path = Path(sheet_file)
    project_dir = path.parent
    try:
        config = load_project_config(project_dir)
        configure_logging(project_dir, config)
        sheet = load_sheet(path, config)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))
    return Engine.from_config(config), sheet, config


def _format_value(value: Any) -> str:
    """Display form of a computed value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.10g}"
    return str(value)


def _format_result(result: Any) -> str:
    if result.error is not None:
        return f"#{result.error.code.value}  {result.error.message}"
    return _format_value(result.value)


def _result_json(result: Any) -> dict[str, Any]:
    return result.model_dump(mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------


@main.command()
@click.argument("formula")
@click.option("--json", "as_json", is_flag=True, help="Output the AST as JSON.")
def parse(formula: str, as_json: bool) -> None:
    """Parse FORMULA and print its syntax tree."""
    from gridcalc.formulas import FormulaParseError, parse_formula
    from gridcalc.formulas.ast import ast_to_dict

    try:
        tree = parse_formula(formula)
    except FormulaParseError as e:
        raise click.ClickException(str(e))
    except RecursionError:
        raise click.ClickException("Formula nesting too deep")

    if as_json:
        click.echo(json.dumps(ast_to_dict(tree), indent=2))
    else:
        click.echo(_render_tree(ast_to_dict(tree)))


def _render_tree(node: dict[str, Any], indent: int = 0) -> str:
    pad = "  " * indent
    kind = node["type"]
    if kind in ("number", "string", "boolean"):
        return f"{pad}{kind} {node['value']!r}"
    if kind == "ref":
        return f"{pad}ref {node['address']}"
    if kind == "range":
        return f"{pad}range {node['start']}:{node['end']}"
    if kind == "function":
        lines = [f"{pad}function {node['name']}"]
        lines.extend(_render_tree(arg, indent + 1) for arg in node["args"])
        return "\n".join(lines)
    if kind == "binary":
        return "\n".join([
            f"{pad}binary {node['op']}",
            _render_tree(node["left"], indent + 1),
            _render_tree(node["right"], indent + 1),
        ])
    return "\n".join([f"{pad}unary {node['op']}", _render_tree(node["operand"], indent + 1)])


# ---------------------------------------------------------------------------
# eval
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("sheet_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output results as JSON.")
def eval_cmd(sheet_file: str, as_json: bool) -> None:
    """Evaluate every cell of SHEET_FILE."""
    engine, sheet, _ = _open_sheet(sheet_file)
    results = engine.evaluate_sheet(sheet)

    if as_json:
        click.echo(json.dumps({a: _result_json(r) for a, r in results.items()}, indent=2))
        return
    for addr, result in results.items():
        click.echo(f"  {addr:8s} {_format_result(result)}")


# ---------------------------------------------------------------------------
# explain
# ---------------------------------------------------------------------------


@main.command()
@click.argument("sheet_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("addr")
@click.option("--json", "as_json", is_flag=True, help="Output the trace as JSON.")
def explain(sheet_file: str, addr: str, as_json: bool) -> None:
    """Show what cell ADDR reads and what it evaluates to."""
    from gridcalc.address import InvalidAddressError

    engine, sheet, _ = _open_sheet(sheet_file)
    try:
        trace = engine.explain(sheet, addr)
    except InvalidAddressError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps(trace.model_dump(mode="json", exclude_none=True), indent=2))
        return
    click.echo(f"Cell:         {trace.cell}")
    if trace.formula is not None:
        click.echo(f"Formula:      {trace.formula}")
    click.echo(f"Dependencies: {', '.join(trace.dependencies) or '-'}")
    click.echo(f"Ranges:       {', '.join(f'{s}:{e}' for s, e in trace.ranges) or '-'}")
    if trace.error is not None:
        click.echo(f"Error:        #{trace.error.code.value}  {trace.error.message}")
    else:
        click.echo(f"Value:        {_format_value(trace.value)}")


# ---------------------------------------------------------------------------
# set
# ---------------------------------------------------------------------------


@main.command("set")
@click.argument("sheet_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("addr")
@click.argument("raw_input", required=False, default=None)
@click.option("--clear", is_flag=True, help="Clear the cell instead of setting it.")
@click.option("--dry-run", is_flag=True, help="Recompute without writing the file back.")
def set_cmd(sheet_file: str, addr: str, raw_input: str | None, clear: bool, dry_run: bool) -> None:
    """Set cell ADDR to RAW_INPUT and recompute its dependents.

    RAW_INPUT starting with '=' is a formula; TRUE/FALSE and numbers are
    stored as such; anything else is text.
    """
    from gridcalc.address import InvalidAddressError
    from gridcalc.cells import CellEdit, make_edit
    from gridcalc.sheet_io import dump_sheet

    if clear == (raw_input is not None):
        raise click.ClickException("Provide either RAW_INPUT or --clear.")

    engine, sheet, _ = _open_sheet(sheet_file)
    engine.rebuild(sheet)
    edit = CellEdit(addr=addr, kind="clear") if clear else make_edit(addr, raw_input)
    try:
        update = engine.apply_edit(sheet, edit)
    except InvalidAddressError as e:
        raise click.ClickException(str(e))

    for cell_addr, result in update.results.items():
        click.echo(f"  {cell_addr:8s} {_format_result(result)}")
    if not dry_run:
        dump_sheet(update.sheet, Path(sheet_file))


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def _echo_events(events: list[dict[str, Any]]) -> None:
    for ev in events:
        ts = ev.get("ts", "?")
        lvl = ev.get("level", "?")
        etype = ev.get("event_type", "?")
        msg = ev.get("message", "")
        cell = ev.get("context", {}).get("cell")
        err = ev.get("error_code")
        line = f"[{ts}] {lvl:7s} {etype}: {msg}"
        if cell:
            line += f"  [{cell}]"
        if err:
            line += f"  ({err})"
        click.echo(line)


@main.command("events")
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option("--level", type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", help="Filter by event type.")
@click.option("--cell", help="Filter by cell address.")
@click.option("--sheet", help="Filter by sheet name.")
@click.option("--limit", default=100, type=int, help="Max events to show.")
@click.option("--json", "as_json", is_flag=True, help="Output events as JSON.")
def events_cmd(
    directory: str,
    level: str | None,
    event_type: str | None,
    cell: str | None,
    sheet: str | None,
    limit: int,
    as_json: bool,
) -> None:
    """Show recent events logged for the sheets in DIRECTORY, newest first."""
    from gridcalc.address import InvalidAddressError, normalize_address
    from gridcalc.logging.sink import EventSink

    if cell:
        try:
            cell = normalize_address(cell)
        except InvalidAddressError as e:
            raise click.ClickException(str(e))

    sink = EventSink(Path(directory))
    events = sink.read_global(
        level=level, event_type=event_type, cell=cell, sheet=sheet, limit=limit
    )

    if as_json:
        click.echo(json.dumps(events, indent=2))
        return
    if not events:
        click.echo("No events found.")
        return
    _echo_events(events)


@main.command("sheet-log")
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.argument("sheet")
def sheet_log(directory: str, sheet: str) -> None:
    """Show every event logged for SHEET in DIRECTORY, oldest first."""
    from gridcalc.logging.sink import EventSink

    sink = EventSink(Path(directory))
    events = sink.read_sheet_log(sheet)
    if not events:
        click.echo(f"No events found for sheet {sheet}.")
        return
    _echo_events(events)
