# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Provides an in-memory stand-in for the data engine. It answers the engine
# commands from a table of canned responses, records every call, and can hold
# a command back on an asyncio.Event to simulate slow or out-of-order replies.
# =============================================================================

import asyncio
from typing import Any

import pytest

from reflex_databoard.services import Services
from reflex_databoard.session import QueryOrchestrator


def make_rows(start: int, count: int) -> list[dict[str, Any]]:
    return [{"id": i, "name": f"user{i}", "joined": "2023-03-01"} for i in range(start, start + count)]


SOURCE_COLUMNS: list[dict[str, Any]] = [
    {"name": "id", "datatype": "Int64", "values": [5]},
    {"name": "name", "datatype": "String", "values": ["Alice"]},
    {"name": "joined", "datatype": "String", "values": ["2023-03-01"]},
]


class FakeEngine:
    """Callable matching the ``invoke(command, args)`` transport signature."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.responses: dict[str, Any] = {
            "databoard_loader": True,
            "databoard_columns": {"columns": SOURCE_COLUMNS},
            "databoard_preview": lambda args: make_rows(0, 3),
            "databoard_count": 250,
            "databoard_unique": lambda args: {"datatype": "String", "values": ["a", "b"]},
            "databoard_setting": True,
            "databoard_search": {"records": make_rows(0, 100), "columns": ["id", "name", "joined"]},
            "databoard_search_more": lambda args: make_rows(args["start"], 100),
            "databoard_search_save": True,
        }

    def hold(self, command: str) -> asyncio.Event:
        """Block *command* until the returned event is set."""
        gate = asyncio.Event()
        self.gates[command] = gate
        return gate

    def commands(self) -> list[str]:
        return [command for command, _ in self.calls]

    def args_of(self, command: str) -> list[dict[str, Any]]:
        return [args for name, args in self.calls if name == command]

    async def __call__(self, command: str, args: dict[str, Any]) -> Any:
        self.calls.append((command, args))
        gate = self.gates.get(command)
        if gate is not None:
            await gate.wait()
        response = self.responses[command]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(args)
        return response


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def services(engine: FakeEngine) -> Services:
    return Services(engine)


@pytest.fixture
def board(services: Services) -> QueryOrchestrator:
    return QueryOrchestrator(services)


@pytest.fixture
async def loaded_board(board: QueryOrchestrator) -> QueryOrchestrator:
    assert await board.open("/data/users.csv")
    return board
