"""Query configuration models and the grid column definition.

The configuration types are frozen dataclasses: every edit produces a new
value (see :mod:`reflex_databoard.setting`).  Each type knows how to turn
itself into the JSON payload understood by the backend engine and back.
Enums travel over the wire as their integer values.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Literal

import reflex as rx
from reflex.components.props import PropsBase


class _WireEnum(IntEnum):
    """Integer enum with a lenient decoder for backend payloads."""

    @classmethod
    def _fallback(cls) -> "_WireEnum":
        """Member used for values the enum does not know; the first by default."""
        return next(iter(cls))

    @classmethod
    def decode(cls, value: Any) -> Any:
        """Return the member for *value*, or the fallback member if unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value in cls.__members__:
            return cls.__members__[value]
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls._fallback()


class ColumnType(_WireEnum):
    """Semantic type of a source column as seen by the query configuration."""

    STRING = 0
    INT = 1
    FLOAT = 2
    DATE = 3


class MetricMode(_WireEnum):
    """Aggregation applied to a metric column."""

    SUM = 0
    COUNT = 1
    MAX = 2
    MIN = 3
    AVG = 4
    RATE = 5

    @classmethod
    def _fallback(cls) -> "MetricMode":
        return cls.COUNT


class FilterMode(_WireEnum):
    """How values for a filter field are entered and matched."""

    SINGLE = 0
    MULTI = 1
    MATCH_PREFIX = 2
    DATE_RANGE = 3
    DIGITAL_RANGE = 4

    @classmethod
    def _fallback(cls) -> "FilterMode":
        return cls.MATCH_PREFIX


@dataclass(frozen=True)
class RawColumn:
    """A source column as reported by the backend right after loading."""

    name: str
    datatype: str
    values: tuple[Any, ...] = ()

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RawColumn":
        values = payload.get("values")
        if values is None:
            values = payload.get("sample_values", [])
        return cls(
            name=str(payload["name"]),
            datatype=str(payload.get("datatype", "")),
            values=tuple(values),
        )

    @property
    def sample(self) -> Any:
        """First sample value, or ``None`` when the backend sent none."""
        return self.values[0] if self.values else None


@dataclass(frozen=True)
class Dimension:
    rows: tuple[str, ...] = ()
    columns: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, list[str]]:
        return {"rows": list(self.rows), "columns": list(self.columns)}

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> "Dimension":
        payload = payload or {}
        return cls(
            rows=tuple(payload.get("rows", [])),
            columns=tuple(payload.get("columns", [])),
        )


@dataclass(frozen=True)
class Metric:
    index: str
    mode: MetricMode = MetricMode.SUM

    def to_payload(self) -> dict[str, Any]:
        return {"index": self.index, "mode": int(self.mode)}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Metric":
        return cls(index=payload["index"], mode=MetricMode.decode(payload.get("mode", 0)))


@dataclass(frozen=True)
class Filter:
    index: str
    mode: FilterMode = FilterMode.MULTI

    def to_payload(self) -> dict[str, Any]:
        return {"index": self.index, "mode": int(self.mode)}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Filter":
        return cls(index=payload["index"], mode=FilterMode.decode(payload.get("mode", 1)))


@dataclass(frozen=True)
class Rule:
    """Computed-column expression, passed to the backend untouched."""

    name: str
    calc: str

    def to_payload(self) -> dict[str, str]:
        return {"name": self.name, "calc": self.calc}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Rule":
        return cls(name=payload["name"], calc=payload["calc"])


@dataclass(frozen=True)
class SearchItem:
    """One concrete value list entered for a filter field while narrowing."""

    index: str
    mode: FilterMode
    value: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {"index": self.index, "mode": int(self.mode), "value": list(self.value)}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SearchItem":
        return cls(
            index=payload["index"],
            mode=FilterMode.decode(payload.get("mode", 1)),
            value=tuple(str(v) for v in payload.get("value", [])),
        )


@dataclass(frozen=True)
class Setting:
    """The confirmable query configuration.

    ``columns`` keeps insertion order, which is the source column order
    shown to the user.  ``active`` is only ever set by a successful
    confirmation round-trip with the backend.
    """

    columns: dict[str, ColumnType] = field(default_factory=dict)
    dimensions: Dimension = field(default_factory=Dimension)
    metrics: tuple[Metric, ...] = ()
    filters: tuple[Filter, ...] = ()
    rules: tuple[Rule, ...] = ()
    active: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "columns": {name: int(dtype) for name, dtype in self.columns.items()},
            "dimensions": self.dimensions.to_payload(),
            "metrics": [m.to_payload() for m in self.metrics],
            "filters": [f.to_payload() for f in self.filters],
            "rules": [r.to_payload() for r in self.rules],
            "active": self.active,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Setting":
        return cls(
            columns={
                str(name): ColumnType.decode(dtype)
                for name, dtype in payload.get("columns", {}).items()
            },
            dimensions=Dimension.from_payload(payload.get("dimensions")),
            metrics=tuple(Metric.from_payload(m) for m in payload.get("metrics", [])),
            filters=tuple(Filter.from_payload(f) for f in payload.get("filters", [])),
            rules=tuple(Rule.from_payload(r) for r in payload.get("rules", [])),
            active=bool(payload.get("active", False)),
        )

    def referenced_fields(self) -> list[str]:
        """Every column name used by dimensions, metrics and filters, in that order."""
        names: list[str] = [*self.dimensions.rows, *self.dimensions.columns]
        names.extend(m.index for m in self.metrics)
        names.extend(f.index for f in self.filters)
        return list(dict.fromkeys(names))

    def unknown_fields(self) -> list[str]:
        """Referenced names that are not keys of ``columns``."""
        return [name for name in self.referenced_fields() if name not in self.columns]


@dataclass(frozen=True)
class SearchResult:
    records: list[dict[str, Any]]
    columns: list[str]


class ColumnDef(PropsBase):
    """Column definition for the result grid, maps to MUI's GridColDef.

    Attributes are automatically converted from snake_case to camelCase
    when serialized to JavaScript props via PropsBase.
    """

    field: str
    header_name: str | None = None
    width: int | None = None
    min_width: int | None = None
    flex: int | None = None
    type: Literal["string", "number", "date", "dateTime", "boolean", "singleSelect"] | None = None
    align: Literal["left", "center", "right"] | None = None
    sortable: bool | rx.Var[bool] = False
    filterable: bool | rx.Var[bool] = False
    description: str | None = None
    value_options: list[str] | None = None
