"""Typed async facade over the data engine's command interface.

The engine is driven by named commands, each taking a JSON object of
arguments and answering with JSON.  :class:`Services` knows the command
names and payload shapes; how a command actually reaches the engine is
up to the *invoke* callable it is given.  :class:`HttpInvoke` is the
default transport.

Failures come back in two ways, matching the engine's own contract:
a falsy answer (``False``, empty list) or a :class:`BackendError`.
"""

import logging
from typing import Any, Awaitable, Callable, Sequence

import httpx

from reflex_databoard.columns import decode_unique_values
from reflex_databoard.exceptions import BackendError
from reflex_databoard.models import RawColumn, SearchItem, SearchResult, Setting

logger = logging.getLogger(__name__)

Invoke = Callable[[str, dict[str, Any]], Awaitable[Any]]

CMD_LOAD = "databoard_loader"
CMD_COUNT = "databoard_count"
CMD_COLUMNS = "databoard_columns"
CMD_PREVIEW = "databoard_preview"
CMD_UNIQUE = "databoard_unique"
CMD_SETTING = "databoard_setting"
CMD_SEARCH = "databoard_search"
CMD_SEARCH_MORE = "databoard_search_more"
CMD_SAVE = "databoard_search_save"

# Argument name the engine reads the search query from (spelled as the engine spells it).
SEARCH_ARG = "playload"

_DEFAULT_PREVIEW_COUNT: int = 100


class HttpInvoke:
    """Invoke engine commands as ``POST {base_url}/invoke/{command}``.

    The argument object is sent as the JSON body and the decoded JSON
    response is returned.  Transport errors and non-2xx answers are
    raised as :class:`BackendError`.

    Example::

        async with HttpInvoke("http://127.0.0.1:8765") as invoke:
            services = Services(invoke)
            await services.load("/data/sales.csv")
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __call__(self, command: str, args: dict[str, Any]) -> Any:
        url = f"{self.base_url}/invoke/{command}"
        try:
            response = await self._client.post(url, json=args)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise BackendError(command, f"HTTP {exc.response.status_code}: {exc.response.text}") from exc
        except httpx.HTTPError as exc:
            raise BackendError(command, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise BackendError(command, f"invalid JSON response: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpInvoke":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class Services:
    """One method per engine command, with payloads decoded into models."""

    def __init__(self, invoke: Invoke, *, preview_count: int = _DEFAULT_PREVIEW_COUNT) -> None:
        self._invoke = invoke
        self.preview_count = preview_count

    async def load(self, path: str) -> bool:
        """Load *path* as the active dataset; resets the engine's query state."""
        return bool(await self._invoke(CMD_LOAD, {"path": path}))

    async def count(self) -> int:
        ret = await self._invoke(CMD_COUNT, {})
        try:
            return int(ret)
        except (TypeError, ValueError) as exc:
            raise BackendError(CMD_COUNT, f"expected a row count, got {ret!r}") from exc

    async def columns(self) -> list[RawColumn]:
        ret = await self._invoke(CMD_COLUMNS, {})
        if not isinstance(ret, dict) or not isinstance(ret.get("columns"), list):
            raise BackendError(CMD_COLUMNS, f"expected {{'columns': [...]}}, got {type(ret).__name__}")
        return [RawColumn.from_payload(c) for c in ret["columns"]]

    async def preview(self, count: int | None = None) -> list[dict[str, Any]]:
        ret = await self._invoke(CMD_PREVIEW, {"count": count or self.preview_count})
        return list(ret or [])

    async def unique_values(self, name: str) -> list[str]:
        """Distinct values of column *name*, as display strings."""
        ret = await self._invoke(CMD_UNIQUE, {"name": name})
        if not isinstance(ret, dict):
            raise BackendError(CMD_UNIQUE, f"expected an object for {name!r}, got {type(ret).__name__}")
        return decode_unique_values(str(ret.get("datatype", "")), ret.get("values") or [])

    async def apply_setting(self, setting: Setting) -> bool:
        """Commit the column type overrides; only ``columns`` is sent."""
        payload = {"columns": setting.to_payload()["columns"]}
        return bool(await self._invoke(CMD_SETTING, {"setting": payload}))

    async def search(self, setting: Setting, search: Sequence[SearchItem]) -> SearchResult:
        payload = {**setting.to_payload(), "search": [item.to_payload() for item in search]}
        ret = await self._invoke(CMD_SEARCH, {SEARCH_ARG: payload})
        if not isinstance(ret, dict):
            raise BackendError(CMD_SEARCH, f"expected an object, got {type(ret).__name__}")
        return SearchResult(
            records=list(ret.get("records") or []),
            columns=[str(c) for c in ret.get("columns") or []],
        )

    async def search_more(self, start: int) -> list[dict[str, Any]]:
        """Next page of the last search result, starting at row *start*."""
        return list(await self._invoke(CMD_SEARCH_MORE, {"start": start}) or [])

    async def save(self, path: str) -> bool:
        """Persist the last search result to *path* on the engine side."""
        return bool(await self._invoke(CMD_SAVE, {"path": path}))
