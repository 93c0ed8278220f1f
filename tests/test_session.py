import asyncio

import pytest

from reflex_databoard.exceptions import BackendError, SessionBusyError, SessionStateError
from reflex_databoard.models import ColumnType, Filter, FilterMode, SearchItem
from reflex_databoard.session import SessionPhase
from reflex_databoard.setting import MarkActive, SetColumnType, SetFilterFields, SetFilterMode


async def _settle() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


# --- Load / close ---

async def test_open_reads_the_source(engine, board):
    assert await board.open("/data/users.csv")

    assert board.session.phase == SessionPhase.LOADED
    assert board.session.file_path == "/data/users.csv"
    assert board.session.columns == ["id", "name", "joined"]
    assert len(board.session.records) == 3
    assert board.session.row_count == 250
    assert engine.commands() == ["databoard_loader", "databoard_columns", "databoard_preview", "databoard_count"]


async def test_open_infers_an_inactive_setting(loaded_board):
    assert list(loaded_board.setting.columns.values()) == [ColumnType.INT, ColumnType.STRING, ColumnType.DATE]
    assert loaded_board.setting.active is False
    assert loaded_board.dimension_choices == ["name", "joined"]
    assert [c.field for c in loaded_board.layout] == ["id", "name", "joined"]


async def test_rejected_load_resets_the_session(engine, loaded_board):
    engine.responses["databoard_loader"] = False
    assert await loaded_board.open("/data/broken.csv") is False
    assert loaded_board.session.phase == SessionPhase.EMPTY
    assert loaded_board.setting.columns == {}
    assert loaded_board.session.records == []


async def test_backend_error_during_load_resets_the_session(engine, board):
    engine.responses["databoard_columns"] = BackendError("databoard_columns", "boom")
    assert await board.open("/data/users.csv") is False
    assert board.session.phase == SessionPhase.EMPTY
    assert board.session.loading is False


async def test_loads_do_not_overlap(engine, board):
    gate = engine.hold("databoard_loader")
    task = asyncio.create_task(board.open("/data/users.csv"))
    await _settle()
    assert board.session.phase == SessionPhase.LOADING

    with pytest.raises(SessionBusyError):
        await board.open("/data/other.csv")
    with pytest.raises(SessionBusyError):
        board.close()

    gate.set()
    assert await task
    assert board.session.phase == SessionPhase.LOADED


async def test_close(loaded_board):
    loaded_board.set_search_value(Filter("name"), ["x"])
    loaded_board.close()
    assert loaded_board.session.phase == SessionPhase.EMPTY
    assert loaded_board.search_items == []
    assert loaded_board.value_options == {}


def test_close_without_file_is_a_no_op(board):
    board.close()
    assert board.session.phase == SessionPhase.EMPTY


# --- Configuration ---

async def test_dispatch_requires_a_file(board):
    with pytest.raises(SessionStateError):
        board.dispatch(SetFilterFields(("name",)))


async def test_dispatch_cannot_mark_active(loaded_board):
    with pytest.raises(SessionStateError):
        loaded_board.dispatch(MarkActive())


async def test_dispatch_updates_setting(loaded_board):
    loaded_board.dispatch(SetColumnType("id", ColumnType.STRING))
    loaded_board.dispatch(SetFilterFields(("name", "id")))
    loaded_board.dispatch(SetFilterMode("name", FilterMode.SINGLE))
    assert loaded_board.setting.columns["id"] == ColumnType.STRING
    assert loaded_board.setting.filters == (Filter("name", FilterMode.SINGLE), Filter("id", FilterMode.MULTI))
    assert loaded_board.dimension_choices == ["id", "name", "joined"]


async def test_set_search_value_upserts(loaded_board):
    loaded_board.set_search_value(Filter("name", FilterMode.SINGLE), ["Alice"])
    loaded_board.set_search_value(Filter("joined", FilterMode.DATE_RANGE), ["2023-01-01", "2023-12-31"])
    items = loaded_board.set_search_value(Filter("name", FilterMode.MULTI), ["Bob", "Carol"])
    assert items == [
        SearchItem("name", FilterMode.SINGLE, ("Bob", "Carol")),
        SearchItem("joined", FilterMode.DATE_RANGE, ("2023-01-01", "2023-12-31")),
    ]


# --- Confirm ---

async def test_confirm_activates_and_runs_a_full_search(engine, loaded_board):
    loaded_board.dispatch(SetFilterFields(("name",)))
    loaded_board.set_search_value(Filter("name"), ["a"])

    assert await loaded_board.confirm() is True

    assert loaded_board.setting.active is True
    assert loaded_board.value_options == {"name": ["a", "b"]}
    assert len(loaded_board.session.records) == 100
    assert loaded_board.search_items == []
    assert engine.commands()[-3:] == ["databoard_setting", "databoard_unique", "databoard_search"]
    assert engine.args_of("databoard_search")[0]["playload"]["search"] == []
    assert loaded_board.layout[1].type == "singleSelect"


async def test_rejected_confirm_changes_nothing(engine, loaded_board):
    engine.responses["databoard_setting"] = False
    loaded_board.dispatch(SetFilterFields(("name",)))

    assert await loaded_board.confirm() is False
    assert await loaded_board.confirm() is False

    assert loaded_board.setting.active is False
    assert loaded_board.value_options == {}
    assert loaded_board.confirming is False
    assert "databoard_search" not in engine.commands()


async def test_failed_value_fetch_fails_the_confirm(engine, loaded_board):
    engine.responses["databoard_unique"] = BackendError("databoard_unique", "boom")
    loaded_board.dispatch(SetFilterFields(("name",)))
    assert await loaded_board.confirm() is False
    assert loaded_board.setting.active is False


async def test_edits_are_blocked_while_confirming(engine, loaded_board):
    gate = engine.hold("databoard_setting")
    task = asyncio.create_task(loaded_board.confirm())
    await _settle()

    with pytest.raises(SessionBusyError):
        loaded_board.dispatch(SetFilterFields(("name",)))
    with pytest.raises(SessionBusyError):
        await loaded_board.search()

    gate.set()
    assert await task


async def test_edits_after_confirm_keep_active(loaded_board):
    await loaded_board.confirm()
    loaded_board.dispatch(SetFilterFields(("name",)))
    assert loaded_board.setting.active is True


# --- Search ---

async def test_narrowed_search_sends_the_terms(engine, loaded_board):
    engine.responses["databoard_search"] = {"records": [{"name": "Alice"}], "columns": ["name"]}
    loaded_board.set_search_value(Filter("name", FilterMode.SINGLE), ["Alice"])

    result = await loaded_board.search()

    assert result.records == [{"name": "Alice"}]
    assert loaded_board.session.records == [{"name": "Alice"}]
    assert [c.field for c in loaded_board.layout] == ["name"]
    assert engine.args_of("databoard_search")[0]["playload"]["search"] == [
        {"index": "name", "mode": 0, "value": ["Alice"]}
    ]
    assert loaded_board.search_items == [SearchItem("name", FilterMode.SINGLE, ("Alice",))]


async def test_searches_do_not_overlap(engine, loaded_board):
    gate = engine.hold("databoard_search")
    task = asyncio.create_task(loaded_board.search(full=True))
    await _settle()
    assert loaded_board.session.phase == SessionPhase.READING

    with pytest.raises(SessionBusyError):
        await loaded_board.search()
    with pytest.raises(SessionBusyError):
        await loaded_board.open("/data/other.csv")

    gate.set()
    await task
    assert loaded_board.session.phase == SessionPhase.LOADED


async def test_search_terms_are_locked_while_searching(engine, loaded_board):
    gate = engine.hold("databoard_search")
    task = asyncio.create_task(loaded_board.search(full=True))
    await _settle()

    with pytest.raises(SessionBusyError):
        loaded_board.set_search_value(Filter("name"), ["Alice"])

    gate.set()
    await task
    assert loaded_board.search_items == []
    loaded_board.set_search_value(Filter("name"), ["Alice"])
    assert loaded_board.search_items == [SearchItem("name", FilterMode.MULTI, ("Alice",))]


async def test_failed_search_clears_reading(engine, loaded_board):
    engine.responses["databoard_search"] = BackendError("databoard_search", "boom")
    with pytest.raises(BackendError):
        await loaded_board.search(full=True)
    assert loaded_board.session.reading is False
    assert len(loaded_board.session.records) == 3


# --- Paging ---

async def test_page_is_appended_at_buffer_end(engine, loaded_board):
    await loaded_board.search(full=True)
    assert await loaded_board.search_more(100) == 100
    assert [r["id"] for r in loaded_board.session.records[99:101]] == [99, 100]
    assert len(loaded_board.session.records) == 200


async def test_page_with_wrong_start_is_dropped(loaded_board):
    await loaded_board.search(full=True)
    assert await loaded_board.search_more(50) == 0
    assert len(loaded_board.session.records) == 100


async def test_empty_page_is_dropped(engine, loaded_board):
    await loaded_board.search(full=True)
    engine.responses["databoard_search_more"] = []
    assert await loaded_board.search_more(100) == 0
    assert len(loaded_board.session.records) == 100


async def test_page_is_stale_after_a_new_search(engine, loaded_board):
    await loaded_board.search(full=True)
    gate = engine.hold("databoard_search_more")
    page = asyncio.create_task(loaded_board.search_more(100))
    await _settle()

    engine.responses["databoard_search"] = {"records": [{"id": 1}] * 5, "columns": ["id"]}
    await loaded_board.search()
    gate.set()

    assert await page == 0
    assert len(loaded_board.session.records) == 5


async def test_page_is_dropped_after_close(engine, loaded_board):
    await loaded_board.search(full=True)
    gate = engine.hold("databoard_search_more")
    page = asyncio.create_task(loaded_board.search_more(100))
    await _settle()

    loaded_board.close()
    gate.set()

    assert await page == 0
    assert loaded_board.session.records == []


async def test_page_is_dropped_after_reopen(engine, loaded_board):
    await loaded_board.search(full=True)
    gate = engine.hold("databoard_search_more")
    page = asyncio.create_task(loaded_board.search_more(100))
    await _settle()

    # The new file's preview has as many rows as the old buffer.
    engine.responses["databoard_preview"] = lambda args: [{"id": -i} for i in range(100)]
    assert await loaded_board.open("/data/other.csv")
    gate.set()

    assert await page == 0
    assert loaded_board.session.file_path == "/data/other.csv"
    assert len(loaded_board.session.records) == 100
    assert all(r["id"] <= 0 for r in loaded_board.session.records)


async def test_negative_start_is_rejected(loaded_board):
    with pytest.raises(ValueError):
        await loaded_board.search_more(-1)


async def test_paging_requires_a_file(board):
    with pytest.raises(SessionStateError):
        await board.search_more(0)


# --- Save ---

async def test_save_requires_a_confirmed_setting(loaded_board):
    with pytest.raises(SessionStateError):
        await loaded_board.save("/tmp/out.csv")


async def test_save(engine, loaded_board):
    await loaded_board.confirm()
    assert await loaded_board.save("/tmp/out.csv") is True
    assert engine.args_of("databoard_search_save") == [{"path": "/tmp/out.csv"}]


@pytest.mark.parametrize("answer", [False, BackendError("databoard_search_save", "disk full")])
async def test_failed_save_returns_false(engine, loaded_board, answer):
    await loaded_board.confirm()
    engine.responses["databoard_search_save"] = answer
    assert await loaded_board.save("/tmp/out.csv") is False


# --- End to end ---

async def test_load_confirm_and_scroll(engine, board):
    assert await board.open("/data/users.csv")
    assert list(board.setting.columns.values()) == [ColumnType.INT, ColumnType.STRING, ColumnType.DATE]

    assert await board.confirm()
    assert len(board.session.records) == 100

    assert await board.search_more(len(board.session.records)) == 100
    assert len(board.session.records) == 200
    assert board.session.records[-1]["id"] == 199
