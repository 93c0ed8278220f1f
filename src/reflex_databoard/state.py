"""Reflex state mixin wiring a :class:`QueryOrchestrator` to reactive vars.

Users inherit from :class:`DataboardMixin` **and** ``rx.State`` and bind
the ``db_*`` vars and event handlers to their own widgets::

    class BoardState(DataboardMixin, rx.State):
        pass

    rx.button("Open", on_click=BoardState.open_file("/data/sales.csv"))

The orchestrator holds an httpx client and frozen dataclasses, neither of
which can live inside ``rx.State``.  It is kept in a module-level
registry keyed by state class and client token, and mirrored into the
JSON-safe ``db_*`` vars after every operation.

Reflex processes the events of one client sequentially, so the registry
entry always has a single writer.  Long-running handlers are async
generators: they ``yield`` once after raising ``db_loading`` /
``db_reading`` so the frontend shows the busy state before the backend
is awaited.
"""

import logging
from typing import Any

import reflex as rx

from reflex_databoard.config import settings
from reflex_databoard.exceptions import DataboardError
from reflex_databoard.models import ColumnType, Filter, FilterMode, MetricMode, SearchItem
from reflex_databoard.services import HttpInvoke, Services
from reflex_databoard.session import QueryOrchestrator
from reflex_databoard.setting import (
    Action,
    SetColumnDimension,
    SetColumnType,
    SetFilterFields,
    SetFilterMode,
    SetMetricFields,
    SetMetricMode,
    SetRowDimension,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Module-level orchestrator registry
# ---------------------------------------------------------------------------

_registry: dict[str, QueryOrchestrator] = {}

# One transport for every client; it keeps no per-session state.
_services: Services | None = None


def _shared_services() -> Services:
    global _services
    if _services is None:
        invoke = HttpInvoke(settings.BACKEND_URL, timeout=settings.REQUEST_TIMEOUT)
        _services = Services(invoke, preview_count=settings.PREVIEW_COUNT)
    return _services


def get_orchestrator(key: str) -> QueryOrchestrator:
    """Return (or create) the orchestrator registered under *key*."""
    if key not in _registry:
        _registry[key] = QueryOrchestrator(_shared_services())
    return _registry[key]


def search_value_for(board: QueryOrchestrator, index: str, value: list[Any]) -> list[SearchItem] | None:
    """Record narrowing values for filter field *index*.

    Returns the updated search terms, or ``None`` when *index* is not one
    of the setting's filters.  ``None`` entries from the widget are dropped
    and the rest are sent as strings.
    """
    target: Filter | None = next((f for f in board.setting.filters if f.index == index), None)
    if target is None:
        logger.debug("[Databoard] search value ignored, %r is not a filter", index)
        return None
    return board.set_search_value(target, [str(v) for v in value if v is not None])


async def next_page(board: QueryOrchestrator, shown: int) -> list[dict[str, Any]] | None:
    """Fetch the page after the *shown* rows the client displays.

    Returns the grown row buffer, or ``None`` when nothing was appended
    (no file, a stale offset, or the end of the result).
    """
    if board.session.file_path is None:
        return None
    appended = await board.search_more(shown)
    return board.session.records if appended else None


# ---------------------------------------------------------------------------
# DataboardMixin
# ---------------------------------------------------------------------------

class DataboardMixin(rx.State, mixin=True):
    """Reflex State mixin for loading a file, configuring and paging a query.

    This is a Reflex **mixin** (``mixin=True``): every subclass gets its
    own independent set of ``db_*`` reactive variables.

    All state variable names are prefixed with ``db_`` to avoid
    collisions when composed with other state.
    """

    # -- Session --
    db_file: str = ""
    db_loading: bool = False
    db_reading: bool = False
    db_columns: list[str] = []
    db_records: list[dict[str, Any]] = []
    db_row_count: int = 0
    db_layout: list[dict[str, Any]] = []

    # -- Configuration --
    db_setting: dict[str, Any] = {}
    db_active: bool = False
    db_dimension_choices: list[str] = []
    db_search: list[dict[str, Any]] = []
    db_value_options: dict[str, list[str]] = {}

    db_message: str = ""

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _databoard(self) -> QueryOrchestrator:
        key = f"{type(self).__name__}:{self.router.session.client_token}"
        return get_orchestrator(key)

    def _sync_databoard(self) -> None:
        """Mirror the orchestrator into the reactive vars."""
        board = self._databoard()
        session = board.session
        self.db_file = session.file_path or ""  # type: ignore[assignment]
        self.db_loading = session.loading  # type: ignore[assignment]
        self.db_reading = session.reading  # type: ignore[assignment]
        self.db_columns = list(session.columns)  # type: ignore[assignment]
        self.db_records = session.records  # type: ignore[assignment]
        self.db_row_count = session.row_count  # type: ignore[assignment]
        self.db_layout = [c.dict() for c in board.layout]  # type: ignore[assignment]
        self.db_setting = board.setting.to_payload()  # type: ignore[assignment]
        self.db_active = board.setting.active  # type: ignore[assignment]
        self.db_dimension_choices = board.dimension_choices  # type: ignore[assignment]
        self.db_search = [item.to_payload() for item in board.search_items]  # type: ignore[assignment]
        self.db_value_options = dict(board.value_options)  # type: ignore[assignment]

    def _apply_setting_action(self, action: Action) -> None:
        try:
            self._databoard().dispatch(action)
        except DataboardError as exc:
            self.db_message = exc.message  # type: ignore[assignment]
            return
        self._sync_databoard()

    # ------------------------------------------------------------------
    # File handlers
    # ------------------------------------------------------------------

    async def open_file(self, path: str):
        """Load *path* through the backend and infer initial column types."""
        if not path:
            return
        self.db_loading = True  # type: ignore[assignment]
        self.db_message = "Loading..."  # type: ignore[assignment]
        yield

        try:
            loaded = await self._databoard().open(path)
        except DataboardError as exc:
            self.db_loading = False  # type: ignore[assignment]
            self.db_message = exc.message  # type: ignore[assignment]
            return
        self._sync_databoard()
        if loaded:
            self.db_message = f"Loaded {self.db_row_count:,} rows."  # type: ignore[assignment]
        else:
            self.db_message = ""  # type: ignore[assignment]

    def close_file(self) -> None:
        try:
            self._databoard().close()
        except DataboardError as exc:
            self.db_message = exc.message  # type: ignore[assignment]
            return
        self._sync_databoard()
        self.db_message = ""  # type: ignore[assignment]

    async def save_result(self, path: str) -> None:
        """Ask the backend to write the last query result to *path*."""
        if not path:
            return
        try:
            saved = await self._databoard().save(path)
        except DataboardError as exc:
            self.db_message = exc.message  # type: ignore[assignment]
            return
        if saved:
            self.db_message = f"Result saved to {path}"  # type: ignore[assignment]
        else:
            self.db_message = f"Could not save the result to {path}"  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Configuration handlers
    # ------------------------------------------------------------------

    def set_column_type(self, name: str, dtype: int) -> None:
        self._apply_setting_action(SetColumnType(name=name, dtype=ColumnType.decode(dtype)))

    def set_filter_fields(self, names: list[str]) -> None:
        self._apply_setting_action(SetFilterFields(names=tuple(names)))

    def set_filter_mode(self, index: str, mode: int) -> None:
        self._apply_setting_action(SetFilterMode(index=index, mode=FilterMode.decode(mode)))

    def set_row_dimension(self, names: list[str]) -> None:
        self._apply_setting_action(SetRowDimension(names=tuple(names)))

    def set_column_dimension(self, names: list[str]) -> None:
        self._apply_setting_action(SetColumnDimension(names=tuple(names)))

    def set_metric_fields(self, names: list[str]) -> None:
        self._apply_setting_action(SetMetricFields(names=tuple(names)))

    def set_metric_mode(self, index: str, mode: int) -> None:
        self._apply_setting_action(SetMetricMode(index=index, mode=MetricMode.decode(mode)))

    async def confirm_setting(self):
        """Confirm the configuration, refresh value options and run a full search."""
        self.db_reading = True  # type: ignore[assignment]
        self.db_message = "Applying setting..."  # type: ignore[assignment]
        yield

        try:
            confirmed = await self._databoard().confirm()
        except DataboardError as exc:
            self._sync_databoard()
            self.db_message = exc.message  # type: ignore[assignment]
            return
        self._sync_databoard()
        self.db_message = "" if confirmed else "The setting was not accepted."  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Search handlers
    # ------------------------------------------------------------------

    def set_search_value(self, index: str, value: list[str]) -> None:
        """Record the narrowing values entered for filter field *index*."""
        try:
            items = search_value_for(self._databoard(), index, value)
        except DataboardError as exc:
            self.db_message = exc.message  # type: ignore[assignment]
            return
        if items is not None:
            self.db_search = [item.to_payload() for item in items]  # type: ignore[assignment]

    async def _run_search(self, full: bool):
        self.db_reading = True  # type: ignore[assignment]
        self.db_message = "Searching..."  # type: ignore[assignment]
        yield

        try:
            await self._databoard().search(full=full)
        except DataboardError as exc:
            self._sync_databoard()
            self.db_message = exc.message  # type: ignore[assignment]
            return
        self._sync_databoard()
        self.db_message = ""  # type: ignore[assignment]

    async def run_search(self):
        """Query with the current narrowing terms."""
        async for update in self._run_search(full=False):
            yield update

    async def clear_search(self):
        """Drop the narrowing terms and query with the setting alone."""
        async for update in self._run_search(full=True):
            yield update

    async def handle_scroll_end(self, _params: dict[str, Any]) -> None:
        """Fetch the next page when the grid scroller reaches the bottom."""
        try:
            records = await next_page(self._databoard(), len(self.db_records))
        except DataboardError as exc:
            self.db_message = exc.message  # type: ignore[assignment]
            return
        if records is not None:
            self.db_records = records  # type: ignore[assignment]
