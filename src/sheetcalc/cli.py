"""Command-line interface for sheetcalc."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
import yaml

from sheetcalc import __version__


def _load_cells(path: str | None) -> dict[str, Any]:
    """Read a yaml mapping of address -> raw value (optionally under ``cells:``)."""
    if path is None:
        return {}
    data = yaml.safe_load(Path(path).read_text()) or {}
    if isinstance(data, dict) and isinstance(data.get("cells"), dict):
        data = data["cells"]
    if not isinstance(data, dict):
        raise click.ClickException(f"{path}: expected a mapping of cell address to value")
    return {str(k): v for k, v in data.items()}


def _parse_overrides(overrides: tuple[str, ...]) -> dict[str, Any]:
    cells: dict[str, Any] = {}
    for item in overrides:
        if "=" not in item:
            raise click.ClickException(f"Invalid --set format: {item!r}. Use A1=value.")
        k, v = item.split("=", 1)
        try:
            cells[k.strip()] = yaml.safe_load(v) if v.strip() else ""
        except yaml.YAMLError:
            cells[k.strip()] = v
    return cells


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


@click.group()
@click.version_option(version=__version__, prog_name="sheetcalc")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True),
    help="A sheetcalc.yaml file or a directory containing one.",
)
@click.pass_context
def main(ctx: click.Context, config_path: str | None) -> None:
    """sheetcalc -- spreadsheet formula engine."""
    from sheetcalc.config import load_config

    try:
        ctx.obj = load_config(Path(config_path) if config_path else None)
    except ValueError as e:
        raise click.ClickException(str(e))


# ---------------------------------------------------------------------------
# eval
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("formula")
@click.option("--context", "context_path", default=None, type=click.Path(exists=True), help="Yaml mapping of cell values.")
@click.option("--set", "overrides", multiple=True, help="Set a cell as A1=value (repeatable).")
@click.option("--strict", is_flag=True, help="Non-numeric cell text in arithmetic is an error.")
@click.option("--seed", type=int, default=None, help="Seed for RANDOM/RANDBETWEEN.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def eval_cmd(
    config: dict[str, Any],
    formula: str,
    context_path: str | None,
    overrides: tuple[str, ...],
    strict: bool,
    seed: int | None,
    as_json: bool,
) -> None:
    """Evaluate FORMULA against a cell context."""
    from sheetcalc.config import make_rng
    from sheetcalc.engine import evaluate_detailed
    from sheetcalc.logging import EventLevel, EventSink, EventType, emit, make_cell_event
    from sheetcalc.values import display_text

    context = _load_cells(context_path)
    context.update(_parse_overrides(overrides))
    if seed is not None:
        config = {**config, "random_seed": seed}
    strict = strict or bool(config["strict_references"])

    result = evaluate_detailed(formula, context, strict=strict, rng=make_rng(config))

    if not result.ok and config.get("log_dir"):
        sink = EventSink(Path(config["log_dir"]), fsync=bool(config["logging_fsync"]))
        emit(
            make_cell_event(
                EventType.eval_failed,
                EventLevel.warning,
                result.message,
                formula=formula,
                error_code=result.error.value,
            ),
            sink,
        )

    if as_json:
        payload = {
            "formula": formula,
            "value": _jsonable(result.display),
            "error": result.error.value if result.error else None,
            "message": result.message,
        }
        click.echo(json.dumps(payload, indent=2))
    else:
        click.echo(display_text(result.display))


# ---------------------------------------------------------------------------
# deps
# ---------------------------------------------------------------------------


@main.command()
@click.argument("formula")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def deps(formula: str, as_json: bool) -> None:
    """List the cells FORMULA references, in order of first appearance."""
    from sheetcalc.dependencies import extract_dependencies

    found = extract_dependencies(formula)
    if as_json:
        click.echo(json.dumps(found))
    else:
        for addr in found:
            click.echo(addr)


# ---------------------------------------------------------------------------
# addr
# ---------------------------------------------------------------------------


@main.group()
def addr() -> None:
    """Cell address conversion."""


@addr.command("encode")
@click.argument("row", type=int)
@click.argument("col", type=int)
def addr_encode(row: int, col: int) -> None:
    """Print the address of zero-based ROW and COL."""
    from sheetcalc.addressing import encode_address

    try:
        click.echo(encode_address(row, col))
    except ValueError as e:
        raise click.ClickException(str(e))


@addr.command("decode")
@click.argument("address")
def addr_decode(address: str) -> None:
    """Print the zero-based row and column of ADDRESS."""
    from sheetcalc.addressing import decode_address

    pos = decode_address(address)
    if pos is None:
        raise click.ClickException(f"Invalid cell address: {address!r}")
    click.echo(f"{pos.row} {pos.col}")


# ---------------------------------------------------------------------------
# recalc
# ---------------------------------------------------------------------------


@main.command()
@click.argument("sheet_file", type=click.Path(exists=True))
@click.option("--strict", is_flag=True, help="Non-numeric cell text in arithmetic is an error.")
@click.option("--log-dir", default=None, type=click.Path(), help="Write recalculation events to DIR/events.ndjson.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def recalc(
    config: dict[str, Any],
    sheet_file: str,
    strict: bool,
    log_dir: str | None,
    as_json: bool,
) -> None:
    """Evaluate every cell of SHEET_FILE (yaml mapping of address -> input)."""
    from sheetcalc.config import make_rng
    from sheetcalc.logging import EventSink
    from sheetcalc.sheet import recalc_sheet
    from sheetcalc.values import display_text

    cells = _load_cells(sheet_file)
    strict = strict or bool(config["strict_references"])
    log_dir = log_dir or config.get("log_dir")
    sink = EventSink(Path(log_dir), fsync=bool(config["logging_fsync"])) if log_dir else None

    sheet = recalc_sheet(cells, strict=strict, rng=make_rng(config), sink=sink)
    values = sheet.evaluate_all()
    errors = sheet.get_errors()

    if as_json:
        payload = {
            "values": {a: _jsonable(v) for a, v in values.items()},
            "errors": errors,
        }
        click.echo(json.dumps(payload, indent=2))
        return

    for a, v in values.items():
        click.echo(f"{a}\t{display_text(v)}")
    if errors:
        click.echo(f"{len(errors)} error(s)", err=True)
