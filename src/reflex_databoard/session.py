"""Dataset session and query orchestration.

:class:`QueryOrchestrator` owns everything the client knows about the
currently loaded file: the :class:`DatasetSession` (row buffer, flags),
the :class:`~reflex_databoard.models.Setting`, the ad-hoc search terms
and the filter value cache.  It is meant to have a single owner that
applies its operations one at a time (an ``rx.State`` event queue, or a
plain asyncio task); responses are applied when the awaited backend call
returns, on that same owner.

Session phases::

    EMPTY -> LOADING -> LOADED <-> READING
                          |
                          +-> EMPTY (close)

Full and narrowed searches may not overlap each other, loads may not
overlap anything.  Incremental page fetches are not serialised; instead
their result is only merged into the session they were requested for, and
only when the caller's ``start`` still equals the buffer length at the
time the response arrives.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from reflex_databoard.columns import build_column_defs
from reflex_databoard.exceptions import BackendError, SessionBusyError, SessionStateError
from reflex_databoard.inference import infer_setting
from reflex_databoard.models import ColumnDef, Filter, RawColumn, SearchItem, SearchResult, Setting
from reflex_databoard.services import Services
from reflex_databoard.setting import Action, MarkActive, dimension_candidates, reduce
from reflex_databoard.values import populate

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    LOADED = "loaded"
    READING = "reading"


@dataclass
class DatasetSession:
    """The loaded file and the rows currently held in memory."""

    file_path: str | None = None
    loading: bool = False
    reading: bool = False
    columns: list[str] = field(default_factory=list)
    records: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0

    @property
    def phase(self) -> SessionPhase:
        if self.loading:
            return SessionPhase.LOADING
        if self.file_path is None:
            return SessionPhase.EMPTY
        if self.reading:
            return SessionPhase.READING
        return SessionPhase.LOADED


class QueryOrchestrator:
    """Drive the backend engine from a :class:`Setting` and ad-hoc search terms.

    Example::

        orchestrator = QueryOrchestrator(Services(HttpInvoke(url)))
        if await orchestrator.open("/data/sales.csv"):
            orchestrator.dispatch(SetFilterFields(("region",)))
            await orchestrator.confirm()
            await orchestrator.search_more(len(orchestrator.session.records))
    """

    def __init__(self, services: Services) -> None:
        self.services = services
        self.session = DatasetSession()
        self.setting = Setting()
        self.search_items: list[SearchItem] = []
        self.value_options: dict[str, list[str]] = {}
        self.layout_columns: list[str] = []
        self.confirming: bool = False

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def layout(self) -> list[ColumnDef]:
        """Grid column definitions for the rows currently in the buffer."""
        return build_column_defs(
            self.layout_columns,
            self.setting.columns,
            value_options_map=self.value_options,
        )

    @property
    def dimension_choices(self) -> list[str]:
        return dimension_candidates(self.setting)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_loaded(self) -> None:
        if self.session.loading:
            raise SessionBusyError("A file is still loading.")
        if self.session.file_path is None:
            raise SessionStateError("No file is loaded.")

    def _require_not_reading(self) -> None:
        if self.session.reading:
            raise SessionBusyError("A search is still running.")
        if self.confirming:
            raise SessionBusyError("The setting is being confirmed.")

    # ------------------------------------------------------------------
    # Load / close
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self.session = DatasetSession()
        self.setting = Setting()
        self.search_items = []
        self.value_options = {}
        self.layout_columns = []

    async def _read_source(self, path: str) -> tuple[list[RawColumn], list[dict[str, Any]], int] | None:
        if not await self.services.load(path):
            return None
        raw_columns = await self.services.columns()
        records = await self.services.preview()
        row_count = await self.services.count()
        return raw_columns, records, row_count

    async def open(self, path: str) -> bool:
        """Load *path* and start a fresh, unconfirmed setting for it.

        On failure the session falls back to "no file loaded".

        Returns:
            Whether the file was loaded.

        Raises:
            SessionBusyError: If a load, search or confirm is in flight.
        """
        if self.session.loading:
            raise SessionBusyError("A file is already loading.")
        self._require_not_reading()

        session = self.session
        session.loading = True
        t0 = time.perf_counter()
        try:
            loaded = await self._read_source(path)
        except BackendError as exc:
            logger.warning("[Databoard] load failed for %s: %s", path, exc.message)
            loaded = None
        finally:
            session.loading = False

        if loaded is None:
            logger.info("[Databoard] could not load %s", path)
            self._reset()
            return False

        raw_columns, records, row_count = loaded
        self._reset()
        self.session = DatasetSession(
            file_path=path,
            columns=[c.name for c in raw_columns],
            records=records,
            row_count=row_count,
        )
        self.setting = infer_setting(raw_columns)
        self.layout_columns = list(self.session.columns)
        logger.info(
            "[Databoard] loaded %s: %d columns, %d rows, preview=%d (%.1fms)",
            path,
            len(raw_columns),
            row_count,
            len(records),
            (time.perf_counter() - t0) * 1000,
        )
        return True

    def close(self) -> None:
        """Forget the loaded file.  Only allowed while idle."""
        if self.session.loading:
            raise SessionBusyError("A file is still loading.")
        self._require_not_reading()
        if self.session.file_path is None:
            return
        self._reset()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def dispatch(self, action: Action) -> Setting:
        """Apply a configuration edit to the current setting.

        Raises:
            SessionBusyError: While the setting is being confirmed.
            SessionStateError: Without a loaded file, or for
                :class:`MarkActive`, which only :meth:`confirm` may apply.
        """
        self._require_loaded()
        if self.confirming:
            raise SessionBusyError("The setting is being confirmed.")
        if isinstance(action, MarkActive):
            raise SessionStateError("Only a confirmed setting can become active.")
        self.setting = reduce(self.setting, action)
        return self.setting

    def set_search_value(self, target: Filter, value: Iterable[str]) -> list[SearchItem]:
        """Set the narrowing values for one filter field.

        The existing term for ``target.index`` keeps its position and mode;
        a new term is appended with the filter's mode.

        Raises:
            SessionBusyError: While a search is running, since a full
                search clears the terms when it completes.
        """
        self._require_loaded()
        if self.session.reading:
            raise SessionBusyError("A search is still running.")
        values = tuple(value)
        items: list[SearchItem] = []
        found = False
        for item in self.search_items:
            if item.index == target.index:
                items.append(SearchItem(index=item.index, mode=item.mode, value=values))
                found = True
            else:
                items.append(item)
        if not found:
            items.append(SearchItem(index=target.index, mode=target.mode, value=values))
        self.search_items = items
        return items

    async def confirm(self) -> bool:
        """Commit the setting to the backend, then run a full search.

        On success the filter value cache is replaced and the setting
        becomes active.  On failure nothing changes and ``active`` keeps
        its previous value.

        Returns:
            Whether the backend accepted the setting.
        """
        self._require_loaded()
        self._require_not_reading()

        self.confirming = True
        candidate = self.setting
        try:
            try:
                accepted = await self.services.apply_setting(candidate)
                options = await populate(self.services, candidate.filters) if accepted else None
            except BackendError as exc:
                logger.warning("[Databoard] confirm failed: %s", exc.message)
                return False
            if options is None:
                logger.info("[Databoard] setting rejected by the backend")
                return False
            self.value_options = options
            self.setting = reduce(self.setting, MarkActive())
        finally:
            self.confirming = False

        await self.search(full=True)
        return True

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    async def search(self, full: bool = False) -> SearchResult:
        """Run a full (``full=True``) or narrowed query and replace the buffer.

        A full query ignores the ad-hoc search terms and clears them once
        the response arrives.

        Raises:
            SessionBusyError: If another search, load or confirm is in flight.
            BackendError: If the backend call fails; ``reading`` is reset.
        """
        self._require_loaded()
        self._require_not_reading()

        session = self.session
        session.reading = True
        t0 = time.perf_counter()
        try:
            result = await self.services.search(self.setting, [] if full else self.search_items)
        finally:
            session.reading = False

        session.records = list(result.records)
        self.layout_columns = list(result.columns)
        if full:
            self.search_items = []
        logger.info(
            "[Databoard] %s search: %d rows, %d columns (%.1fms)",
            "full" if full else "narrowed",
            len(result.records),
            len(result.columns),
            (time.perf_counter() - t0) * 1000,
        )
        return result

    async def search_more(self, start: int) -> int:
        """Fetch the page starting at *start* and append it if still current.

        The page is merged only when the session it was requested for is
        still the current one, *start* equals the buffer length at the time
        the response arrives and the page is non-empty; anything else is
        dropped silently.

        Returns:
            The number of rows appended.
        """
        if start < 0:
            raise ValueError(f"start must be non-negative, got {start}")
        self._require_loaded()

        session = self.session
        t0 = time.perf_counter()
        rows = await self.services.search_more(start)

        current = len(session.records)
        # A close or reopen replaces the session object.
        if self.session is not session or start != current or not rows:
            logger.debug(
                "[Databoard] page fetch discarded: start=%d, buffer=%d, rows=%d",
                start,
                current,
                len(rows),
            )
            return 0

        session.records = session.records + rows
        logger.info(
            "[Databoard] page fetch: start=%d, +%d rows, total=%d, elapsed=%.1fms",
            start,
            len(rows),
            len(session.records),
            (time.perf_counter() - t0) * 1000,
        )
        return len(rows)

    async def save(self, path: str) -> bool:
        """Ask the backend to write the last query result to *path*.

        Returns:
            ``True`` on success.  A falsy answer or a backend error is
            logged and reported as ``False``.

        Raises:
            SessionStateError: If the setting has not been confirmed.
        """
        self._require_loaded()
        if not self.setting.active:
            raise SessionStateError("Confirm the setting before saving results.")
        try:
            saved = await self.services.save(path)
        except BackendError as exc:
            logger.warning("[Databoard] save to %s failed: %s", path, exc.message)
            return False
        if not saved:
            logger.warning("[Databoard] backend did not save the result to %s", path)
        return saved
