"""CLI for reflex-databoard -- drive the data engine without the web UI.

Usage::

    # Show the columns of a file and the types inferred for them
    reflex-databoard inspect sales.csv

    # Apply a saved setting, run the full query and save the result
    reflex-databoard export sales.csv setting.json result.csv

The engine is reached at ``DATABOARD_BACKEND_URL`` unless
``--backend-url`` is given.  A setting file holds the JSON produced by
``Setting.to_payload()``; ``active`` is ignored.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any, Coroutine, Optional

import typer

from reflex_databoard.columns import records_to_frame
from reflex_databoard.config import settings
from reflex_databoard.exceptions import DataboardError
from reflex_databoard.inference import infer_column_type
from reflex_databoard.models import Setting
from reflex_databoard.services import HttpInvoke, Services
from reflex_databoard.session import QueryOrchestrator
from reflex_databoard.setting import (
    SetColumnDimension,
    SetColumnType,
    SetFilterFields,
    SetFilterMode,
    SetMetricFields,
    SetMetricMode,
    SetRowDimension,
    SetRules,
)

app = typer.Typer(
    name="reflex-databoard",
    help="Load tabular files through the data engine, query them and save results.",
    no_args_is_help=True,
)

BackendUrl = Annotated[
    Optional[str],
    typer.Option("--backend-url", "-b", help="Base URL of the data engine"),
]


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _read_setting_file(path: Path) -> Setting:
    """Parse a setting JSON file, exiting with a message when it is unusable."""
    if not path.exists():
        typer.echo(f"Error: setting file not found: {path}", err=True)
        raise typer.Exit(code=1)
    try:
        payload: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
        return Setting.from_payload(payload)
    except (ValueError, KeyError, AttributeError) as exc:
        typer.echo(f"Error: invalid setting file {path}: {exc}", err=True)
        raise typer.Exit(code=1)


def _apply_saved_setting(board: QueryOrchestrator, saved: Setting) -> None:
    """Replay a saved setting as edits on top of the freshly inferred one."""
    for name, dtype in saved.columns.items():
        if name in board.setting.columns:
            board.dispatch(SetColumnType(name=name, dtype=dtype))
    board.dispatch(SetRowDimension(names=saved.dimensions.rows))
    board.dispatch(SetColumnDimension(names=saved.dimensions.columns))
    board.dispatch(SetMetricFields(names=tuple(m.index for m in saved.metrics)))
    for metric in saved.metrics:
        board.dispatch(SetMetricMode(index=metric.index, mode=metric.mode))
    board.dispatch(SetFilterFields(names=tuple(f.index for f in saved.filters)))
    for flt in saved.filters:
        board.dispatch(SetFilterMode(index=flt.index, mode=flt.mode))
    board.dispatch(SetRules(rules=saved.rules))


def _run(coro: Coroutine[Any, Any, None]) -> None:
    try:
        asyncio.run(coro)
    except DataboardError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(code=1)


async def _inspect(file: str, backend_url: str) -> None:
    async with HttpInvoke(backend_url, timeout=settings.REQUEST_TIMEOUT) as invoke:
        services = Services(invoke, preview_count=settings.PREVIEW_COUNT)
        if not await services.load(file):
            typer.echo(f"Error: the engine could not load {file}", err=True)
            raise typer.Exit(code=1)
        columns = await services.columns()
        row_count = await services.count()

    typer.echo(f"{file}: {row_count:,} rows, {len(columns)} columns")
    width = max((len(c.name) for c in columns), default=0)
    for column in columns:
        dtype = infer_column_type(column.datatype, column.sample)
        typer.echo(f"  {column.name:<{width}}  {column.datatype:<10}  {dtype.name:<6}  {column.sample!r}")


async def _export(
    file: str,
    saved: Setting,
    output: str,
    backend_url: str,
    preview: bool,
) -> None:
    async with HttpInvoke(backend_url, timeout=settings.REQUEST_TIMEOUT) as invoke:
        board = QueryOrchestrator(Services(invoke, preview_count=settings.PREVIEW_COUNT))
        if not await board.open(file):
            typer.echo(f"Error: the engine could not load {file}", err=True)
            raise typer.Exit(code=1)

        missing = [name for name in saved.referenced_fields() if name not in board.setting.columns]
        if missing:
            typer.echo(f"Error: columns not found in {file}: {', '.join(missing)}", err=True)
            raise typer.Exit(code=1)

        _apply_saved_setting(board, saved)
        if not await board.confirm():
            typer.echo("Error: the engine rejected the setting", err=True)
            raise typer.Exit(code=1)

        if preview:
            typer.echo(records_to_frame(board.session.records, board.layout_columns))

        if not await board.save(output):
            typer.echo(f"Error: could not save the result to {output}", err=True)
            raise typer.Exit(code=1)

    typer.echo(f"Result saved to {output}")


@app.command()
def inspect(
    file: Annotated[str, typer.Argument(help="Path of the data file, as seen by the engine")],
    backend_url: BackendUrl = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Load a file and print each column with its inferred type."""
    _configure_logging(verbose)
    _run(_inspect(file, backend_url or settings.BACKEND_URL))


@app.command()
def export(
    file: Annotated[str, typer.Argument(help="Path of the data file, as seen by the engine")],
    setting_file: Annotated[Path, typer.Argument(help="Setting JSON to apply")],
    output: Annotated[str, typer.Argument(help="Where the engine should write the result")],
    backend_url: BackendUrl = None,
    preview: Annotated[bool, typer.Option("--preview/--no-preview", help="Print the first result page")] = True,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Apply a saved setting to a file, run the full query and save the result."""
    _configure_logging(verbose)
    saved = _read_setting_file(setting_file)
    _run(_export(file, saved, output, backend_url or settings.BACKEND_URL, preview))


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
