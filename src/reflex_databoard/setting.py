"""Pure transitions of the query :class:`~reflex_databoard.models.Setting`.

Each edit the user can make in the configuration drawer is an action
dataclass; :func:`reduce` maps ``(setting, action)`` to a new setting
without touching the old one.  The per-field helpers are exposed on their
own so they can be reused (and tested) in isolation.

Nothing here validates names against ``Setting.columns``; that check is
the backend's job when the setting is confirmed.
"""

from dataclasses import dataclass, replace
from typing import Callable, Iterable, Sequence, TypeVar, Union

from reflex_databoard.models import (
    ColumnType,
    Dimension,
    Filter,
    FilterMode,
    Metric,
    MetricMode,
    Rule,
    Setting,
)

_Field = TypeVar("_Field", Filter, Metric)

DEFAULT_FILTER_MODE: FilterMode = FilterMode.MULTI
DEFAULT_METRIC_MODE: MetricMode = MetricMode.SUM

DIMENSION_TYPES: frozenset[ColumnType] = frozenset({ColumnType.STRING, ColumnType.DATE})


# ---------------------------------------------------------------------------
# Field-level transitions
# ---------------------------------------------------------------------------

def set_column_type(
    columns: dict[str, ColumnType],
    name: str,
    dtype: ColumnType,
) -> dict[str, ColumnType]:
    """Return a copy of *columns* with only *name* retyped; order is kept."""
    return {key: (dtype if key == name else value) for key, value in columns.items()}


def reconcile_fields(
    current: Sequence[_Field],
    selected: Iterable[str],
    default_mode: FilterMode | MetricMode,
    factory: Callable[..., _Field],
) -> tuple[_Field, ...]:
    """Rebuild a filter/metric list from a new ordered selection of names.

    Names already present keep their mode, new names get *default_mode*,
    names missing from *selected* are dropped.  Repeated names in
    *selected* collapse to their first occurrence.
    """
    modes = {item.index: item.mode for item in current}
    return tuple(
        factory(index=name, mode=modes.get(name, default_mode))
        for name in dict.fromkeys(selected)
    )


def _set_mode(items: Sequence[_Field], index: str, mode: FilterMode | MetricMode) -> tuple[_Field, ...]:
    return tuple(replace(item, mode=mode) if item.index == index else item for item in items)


def set_filter_fields(filters: Sequence[Filter], selected: Iterable[str]) -> tuple[Filter, ...]:
    return reconcile_fields(filters, selected, DEFAULT_FILTER_MODE, Filter)


def set_filter_mode(filters: Sequence[Filter], target: Filter, mode: FilterMode) -> tuple[Filter, ...]:
    return _set_mode(filters, target.index, mode)


def set_metric_fields(metrics: Sequence[Metric], selected: Iterable[str]) -> tuple[Metric, ...]:
    return reconcile_fields(metrics, selected, DEFAULT_METRIC_MODE, Metric)


def set_metric_mode(metrics: Sequence[Metric], target: Metric, mode: MetricMode) -> tuple[Metric, ...]:
    return _set_mode(metrics, target.index, mode)


def set_row_dimension(dimensions: Dimension, names: Iterable[str]) -> Dimension:
    return replace(dimensions, rows=tuple(names))


def set_column_dimension(dimensions: Dimension, names: Iterable[str]) -> Dimension:
    return replace(dimensions, columns=tuple(names))


def dimension_candidates(setting: Setting) -> list[str]:
    """Column names that may be used as a row or column dimension."""
    return [name for name, dtype in setting.columns.items() if dtype in DIMENSION_TYPES]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SetColumnType:
    name: str
    dtype: ColumnType


@dataclass(frozen=True)
class SetFilterFields:
    names: tuple[str, ...]


@dataclass(frozen=True)
class SetFilterMode:
    index: str
    mode: FilterMode


@dataclass(frozen=True)
class SetRowDimension:
    names: tuple[str, ...]


@dataclass(frozen=True)
class SetColumnDimension:
    names: tuple[str, ...]


@dataclass(frozen=True)
class SetMetricFields:
    names: tuple[str, ...]


@dataclass(frozen=True)
class SetMetricMode:
    index: str
    mode: MetricMode


@dataclass(frozen=True)
class SetRules:
    rules: tuple[Rule, ...]


@dataclass(frozen=True)
class MarkActive:
    """Emitted only after the backend acknowledged the setting."""


Action = Union[
    SetColumnType,
    SetFilterFields,
    SetFilterMode,
    SetRowDimension,
    SetColumnDimension,
    SetMetricFields,
    SetMetricMode,
    SetRules,
    MarkActive,
]


def reduce(setting: Setting, action: Action) -> Setting:
    """Apply one configuration *action* and return the new setting.

    Raises:
        TypeError: If *action* is not one of the known action types.
    """
    if isinstance(action, SetColumnType):
        return replace(setting, columns=set_column_type(setting.columns, action.name, action.dtype))
    if isinstance(action, SetFilterFields):
        return replace(setting, filters=set_filter_fields(setting.filters, action.names))
    if isinstance(action, SetFilterMode):
        target = Filter(index=action.index, mode=action.mode)
        return replace(setting, filters=set_filter_mode(setting.filters, target, action.mode))
    if isinstance(action, SetRowDimension):
        return replace(setting, dimensions=set_row_dimension(setting.dimensions, action.names))
    if isinstance(action, SetColumnDimension):
        return replace(setting, dimensions=set_column_dimension(setting.dimensions, action.names))
    if isinstance(action, SetMetricFields):
        return replace(setting, metrics=set_metric_fields(setting.metrics, action.names))
    if isinstance(action, SetMetricMode):
        target = Metric(index=action.index, mode=action.mode)
        return replace(setting, metrics=set_metric_mode(setting.metrics, target, action.mode))
    if isinstance(action, SetRules):
        return replace(setting, rules=tuple(action.rules))
    if isinstance(action, MarkActive):
        return replace(setting, active=True)
    raise TypeError(f"Unknown setting action: {action!r}")
