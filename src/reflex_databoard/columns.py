"""Utilities for turning backend column data into grid-ready values and layouts."""

from typing import Any, Iterable, Mapping

import polars as pl

from reflex_databoard.models import ColumnDef, ColumnType

DATE_DATATYPE: str = "Date"
DATE_FORMAT: str = "%Y-%m-%d"


def column_type_to_grid_type(dtype: ColumnType | None) -> str | None:
    """Map a :class:`ColumnType` to the closest MUI DataGrid column type.

    Returns ``None`` for columns the configuration does not know about
    (aggregate or pivoted result columns), letting the grid decide.
    """
    if dtype is None:
        return None
    if dtype in (ColumnType.INT, ColumnType.FLOAT):
        return "number"
    if dtype == ColumnType.DATE:
        return "date"
    return "string"


def _value_to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def decode_unique_values(datatype: str, values: Iterable[Any]) -> list[str]:
    """Convert a backend distinct-value list to display strings.

    Date columns arrive as day counts since the Unix epoch and are
    rendered as ``YYYY-MM-DD``; every other type is stringified.  Nulls
    are dropped since they cannot be picked as a filter value.

    Args:
        datatype: Backend type tag reported alongside the values.
        values: The distinct values, in backend order.

    Returns:
        The values as strings, order preserved.
    """
    values = list(values)
    if datatype == DATE_DATATYPE:
        days = pl.Series("days", values, dtype=pl.Int32, strict=False)
        return days.drop_nulls().cast(pl.Date).dt.strftime(DATE_FORMAT).to_list()
    return [_value_to_str(v) for v in values if v is not None]


def build_column_defs(
    names: Iterable[str],
    column_types: Mapping[str, ColumnType],
    *,
    value_options_map: Mapping[str, list[str]] | None = None,
) -> list[ColumnDef]:
    """Build the grid column layout for a list of result column names.

    Args:
        names: Column names in display order (source order after a load,
            response order after a search).
        column_types: The configured type of each known column.
        value_options_map: Distinct values per filter field.  Columns
            present here are rendered as ``singleSelect``.

    Returns:
        One :class:`ColumnDef` per name.
    """
    if value_options_map is None:
        value_options_map = {}

    column_defs: list[ColumnDef] = []
    for name in names:
        grid_type = column_type_to_grid_type(column_types.get(name))
        value_options: list[str] | None = None
        if name in value_options_map:
            value_options = list(value_options_map[name])
            grid_type = "singleSelect"
        column_defs.append(
            ColumnDef(
                field=name,
                header_name=name,
                type=grid_type,
                value_options=value_options,
            )
        )
    return column_defs


def records_to_frame(records: list[dict[str, Any]], columns: list[str] | None = None) -> pl.DataFrame:
    """Collect row dicts into a DataFrame, keeping the result column order."""
    if not records:
        return pl.DataFrame({name: [] for name in columns or []})
    df = pl.DataFrame(records, infer_schema_length=None)
    if columns:
        ordered = [name for name in columns if name in df.columns]
        extra = [name for name in df.columns if name not in ordered]
        df = df.select(ordered + extra)
    return df
