"""Shared fixtures for board import tests: in-memory storage fake and async runner."""

import asyncio
import itertools
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import pytest

from ideaboard.config import Settings
from ideaboard.schemas.board_import import BoardColumnSnapshot, BoardLabelSnapshot, TeamMember
from ideaboard.services.board_storage import StorageResult, StorageError
from ideaboard.services.import_support import drain_background_writes


@dataclass
class _Failure:
    message: str
    persist: int = 0
    when: Optional[Callable[[Dict[str, Any]], bool]] = None


class FakeBoardStorage:
    """
    Same interface as BoardStorage, backed by dicts.

    fail_next() queues insert failures per table; `persist` rows of the
    failing call are still written, mimicking a partially applied write.
    """

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.insert_calls: List[tuple] = []
        self.select_calls: List[tuple] = []
        self._insert_failures: Dict[str, List[_Failure]] = defaultdict(list)
        self._select_failures: Dict[str, int] = defaultdict(int)
        self._ids = itertools.count(1)

    def fail_next(self, table, times=1, message="write failed", persist=0, when=None):
        for _ in range(times):
            self._insert_failures[table].append(_Failure(message, persist, when))

    def fail_select(self, table, times=1):
        self._select_failures[table] += times

    def rows(self, table):
        return self.tables[table]

    def _pop_failure(self, table, rows):
        for i, failure in enumerate(self._insert_failures[table]):
            if failure.when is None or any(failure.when(r) for r in rows):
                return self._insert_failures[table].pop(i)
        return None

    def _store(self, table, row):
        stored = {"id": f"{table}-{next(self._ids)}", **row}
        self.tables[table].append(stored)
        return stored

    async def insert(self, table, rows, returning=None):
        self.insert_calls.append((table, [dict(r) for r in rows]))
        failure = self._pop_failure(table, rows)
        if failure:
            for row in rows[:failure.persist]:
                self._store(table, row)
            return StorageResult(error=StorageError(failure.message))
        stored = [self._store(table, row) for row in rows]
        return StorageResult(data=[_project(r, returning) for r in stored])

    async def select(self, table, filters=None, columns=None):
        self.select_calls.append((table, dict(filters or {})))
        if self._select_failures[table]:
            self._select_failures[table] -= 1
            return StorageResult(error=StorageError("read failed"))
        matches = [
            r for r in self.tables[table]
            if all(r.get(k) == v for k, v in (filters or {}).items())
        ]
        return StorageResult(data=[_project(r, columns) for r in matches])


def _project(row, columns):
    if not columns:
        return dict(row)
    return {c: row.get(c) for c in columns}


def run_async(coro):
    """Run a coroutine to completion, then let fire-and-forget writes finish."""
    async def runner():
        result = await coro
        await drain_background_writes()
        return result
    return asyncio.run(runner())


@pytest.fixture
def storage():
    return FakeBoardStorage()


@pytest.fixture
def fast_settings():
    return Settings(import_retry_delay_seconds=0, import_throttle_seconds=0)


@pytest.fixture
def board_columns():
    return [
        BoardColumnSnapshot(id="col-todo", title="To Do", position=0, task_positions=[0, 1000]),
        BoardColumnSnapshot(id="col-doing", title="In Progress", position=1000),
        BoardColumnSnapshot(id="col-done", title="Done", position=2000, is_done_column=True, task_positions=[500]),
    ]


@pytest.fixture
def board_labels():
    return [BoardLabelSnapshot(id="label-bug", name="Bug", color="red")]


@pytest.fixture
def team_members():
    return [
        TeamMember(id="user-ada", full_name="Ada Lovelace", email="ada@example.com"),
        TeamMember(id="user-alan", full_name="Alan Turing", email="alan@example.com"),
    ]
