"""
Tests for the SQLAlchemy storage client and board snapshot loading (in-memory SQLite).
"""
import asyncio
import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ideaboard.database import Base
from ideaboard.models import BoardColumn, BoardLabel, BoardTask, User, IdeaMember
from ideaboard.services.board_service import load_board_snapshot
from ideaboard.services.board_storage import BoardStorage

from conftest import run_async


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def test_insert_returns_requested_columns_in_order(session_factory):
    storage = BoardStorage(session_factory)
    rows = [
        {"idea_id": "idea-1", "title": "Backlog", "position": 0},
        {"idea_id": "idea-1", "title": "Doing", "position": 1000},
    ]

    result = run_async(storage.insert("board_columns", rows, returning=("id", "title")))

    assert result.ok
    assert [r["title"] for r in result.data] == ["Backlog", "Doing"]
    assert all(set(r) == {"id", "title"} for r in result.data)
    assert all(r["id"] for r in result.data)


def test_select_applies_equality_filters(session_factory):
    storage = BoardStorage(session_factory)
    run_async(storage.insert("board_labels", [
        {"idea_id": "idea-1", "name": "Bug", "color": "red"},
        {"idea_id": "idea-2", "name": "Bug", "color": "blue"},
    ]))

    result = run_async(storage.select("board_labels", filters={"idea_id": "idea-2"}, columns=("name", "color")))

    assert result.data == [{"name": "Bug", "color": "blue"}]


def test_failed_insert_is_an_error_value_and_rolls_back(session_factory):
    storage = BoardStorage(session_factory)
    rows = [
        {"idea_id": "idea-1", "title": "Fine", "position": 0},
        {"idea_id": "idea-1", "title": None, "position": 1000},  # NOT NULL violation
    ]

    result = run_async(storage.insert("board_columns", rows))

    assert not result.ok
    assert result.error.message
    assert run_async(storage.select("board_columns")).data == []


def test_unknown_table_and_column_are_errors(session_factory):
    storage = BoardStorage(session_factory)
    assert run_async(storage.insert("nope", [{}])).error.message == "Unknown table: nope"
    assert not run_async(storage.select("board_tasks", filters={"missing": 1})).ok
    assert not run_async(storage.insert("board_tasks", [{"missing": 1}])).ok


def test_load_board_snapshot(session_factory):
    db = session_factory()
    try:
        db.add_all([
            BoardColumn(id="c1", idea_id="idea-1", title="To Do", position=0),
            BoardColumn(id="c2", idea_id="idea-1", title="Done", position=1000, is_done_column=True),
            BoardColumn(id="other", idea_id="idea-2", title="Elsewhere", position=0),
            BoardLabel(id="l1", idea_id="idea-1", name="Bug", color="red"),
            User(id="u1", email="ada@example.com", full_name="Ada Lovelace"),
            User(id="u2", email="eve@example.com", full_name="Eve"),
            IdeaMember(idea_id="idea-1", user_id="u1"),
        ])
        db.flush()
        db.add_all([
            BoardTask(idea_id="idea-1", column_id="c1", title="A", position=0),
            BoardTask(idea_id="idea-1", column_id="c1", title="B", position=3000),
        ])
        db.commit()

        snapshot = load_board_snapshot(db, "idea-1")
    finally:
        db.close()

    assert [c.id for c in snapshot.columns] == ["c1", "c2"]
    assert snapshot.columns[0].max_task_position == 3000
    assert snapshot.columns[1].max_task_position is None
    assert snapshot.columns[1].is_done_column
    assert [l.name for l in snapshot.labels] == ["Bug"]
    assert [(m.id, m.email) for m in snapshot.team_members] == [("u1", "ada@example.com")]


def test_session_work_runs_off_the_event_loop(session_factory):
    session_threads = []

    def recording_factory():
        session_threads.append(threading.get_ident())
        return session_factory()

    storage = BoardStorage(recording_factory)

    async def run():
        loop_thread = threading.get_ident()
        await storage.insert("board_labels", [{"idea_id": "idea-1", "name": "Bug", "color": "red"}])
        await storage.select("board_labels")
        return loop_thread

    loop_thread = asyncio.run(run())

    assert len(session_threads) == 2
    assert loop_thread not in session_threads
