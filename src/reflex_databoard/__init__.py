"""reflex-databoard – configure, run and page queries against a tabular data engine.

Install the package::

    pip install reflex-databoard

The data engine that parses, filters and aggregates files is reached
through :class:`Services`; :class:`QueryOrchestrator` turns a
:class:`Setting` plus ad-hoc search terms into engine queries and merges
paged results, and :class:`DataboardMixin` exposes all of it as Reflex
state.
"""

from reflex_databoard.columns import build_column_defs, decode_unique_values, records_to_frame
from reflex_databoard.exceptions import (
    BackendError,
    DataboardError,
    SessionBusyError,
    SessionStateError,
)
from reflex_databoard.inference import infer_column_type, infer_setting
from reflex_databoard.models import (
    ColumnDef,
    ColumnType,
    Dimension,
    Filter,
    FilterMode,
    Metric,
    MetricMode,
    RawColumn,
    Rule,
    SearchItem,
    SearchResult,
    Setting,
)
from reflex_databoard.services import HttpInvoke, Services
from reflex_databoard.session import DatasetSession, QueryOrchestrator, SessionPhase
from reflex_databoard.setting import (
    MarkActive,
    SetColumnDimension,
    SetColumnType,
    SetFilterFields,
    SetFilterMode,
    SetMetricFields,
    SetMetricMode,
    SetRowDimension,
    SetRules,
    dimension_candidates,
    reconcile_fields,
    reduce,
)
from reflex_databoard.state import DataboardMixin
from reflex_databoard.values import populate
