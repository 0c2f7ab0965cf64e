"""
Tests for the batched bulk import strategy.
"""
import pytest

from ideaboard.models.board import LABEL_COLORS
from ideaboard.schemas.board_import import NEW_COLUMN, ImportTask
from ideaboard.services.board_import_service import execute_bulk_import, ColumnCreationError
from ideaboard.services.import_mapping import auto_map_columns

from conftest import run_async


def _numbered_tasks(count):
    return [ImportTask(title=f"Task {i}") for i in range(count)]


def _import(storage, tasks, board_columns, board_labels, team_members, settings, mapping=None, progress=None):
    return run_async(execute_bulk_import(
        storage,
        tasks,
        "idea-1",
        "actor-1",
        board_columns,
        mapping if mapping is not None else {},
        "col-doing",
        board_labels,
        team_members,
        on_progress=progress.append if progress is not None else None,
        settings=settings,
    ))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Happy path
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_bulk_import_materializes_everything(storage, board_columns, board_labels, team_members, fast_settings):
    tasks = [
        ImportTask(title="A", column_name="To Do", labels=["bug", "Feature"], assignee_name="ADA LOVELACE"),
        ImportTask(title="B", column_name="Research", checklist_items=["one", "two"], assignee_name="alan@example.com"),
        ImportTask(title="C", assignee_name="Nobody", due_date="2024-02-01"),
        ImportTask(title="D", column_name="To Do", labels=["feature"]),
    ]
    mapping = auto_map_columns(["To Do", "Research"], board_columns)
    assert mapping["Research"] == NEW_COLUMN

    result = _import(storage, tasks, board_columns, board_labels, team_members, fast_settings, mapping)

    assert result.created == 4
    assert result.errors == []

    # New column appended after the highest existing column position
    [research] = storage.rows("board_columns")
    assert research["title"] == "Research"
    assert research["position"] == 3000
    assert mapping["Research"] == research["id"]

    # Only the unknown label is created, with the next palette color
    [feature] = storage.rows("board_labels")
    assert feature["name"] == "Feature"
    assert feature["color"] == LABEL_COLORS[1]

    by_title = {t["title"]: t for t in storage.rows("board_tasks")}
    assert by_title["A"]["column_id"] == "col-todo"
    assert by_title["A"]["position"] == 2000
    assert by_title["D"]["position"] == 3000
    assert by_title["B"]["column_id"] == research["id"]
    assert by_title["B"]["position"] == 0
    assert by_title["C"]["column_id"] == "col-doing"
    assert by_title["C"]["position"] == 0
    assert by_title["C"]["due_date"] == "2024-02-01"

    assert by_title["A"]["assignee_id"] == "user-ada"
    assert by_title["B"]["assignee_id"] == "user-alan"
    assert by_title["C"]["assignee_id"] is None

    links = {(r["task_id"], r["label_id"]) for r in storage.rows("board_task_labels")}
    assert links == {
        (by_title["A"]["id"], "label-bug"),
        (by_title["A"]["id"], feature["id"]),
        (by_title["D"]["id"], feature["id"]),
    }

    checklist = storage.rows("board_checklist_items")
    assert [(c["title"], c["position"]) for c in checklist] == [("one", 0), ("two", 1000)]
    assert all(c["task_id"] == by_title["B"]["id"] for c in checklist)

    activity = storage.rows("board_task_activity")
    assert len(activity) == 4
    assert {a["action"] for a in activity} == {"bulk_imported"}
    assert {a["actor_id"] for a in activity} == {"actor-1"}


def test_bulk_import_reports_progress_per_batch(storage, board_columns, board_labels, team_members, fast_settings):
    progress = []
    _import(storage, _numbered_tasks(120), board_columns, board_labels, team_members, fast_settings, progress=progress)

    assert [(p.phase, p.current) for p in progress] == [
        ("Creating columns...", 0),
        ("Processing labels...", 0),
        ("Importing tasks...", 0),
        ("Importing tasks...", 50),
        ("Importing tasks...", 100),
        ("Done!", 120),
    ]
    assert {p.total for p in progress} == {120}


def test_bulk_import_positions_are_monotonic_per_column(storage, board_columns, board_labels, team_members, fast_settings):
    tasks = [ImportTask(title=f"T{i}", column_name="To Do" if i % 2 else None) for i in range(60)]
    _import(storage, tasks, board_columns, board_labels, team_members, fast_settings, {"To Do": "col-todo"})

    todo = [t["position"] for t in storage.rows("board_tasks") if t["column_id"] == "col-todo"]
    doing = [t["position"] for t in storage.rows("board_tasks") if t["column_id"] == "col-doing"]
    assert todo == [1000 + 1000 * (i + 1) for i in range(30)]
    assert doing == [1000 * i for i in range(30)]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Capacity
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_bulk_import_caps_at_500_tasks(storage, board_columns, board_labels, team_members, fast_settings):
    result = _import(storage, _numbered_tasks(600), board_columns, board_labels, team_members, fast_settings)

    assert result.created == 500
    submitted = [row["title"] for table, rows in storage.insert_calls if table == "board_tasks" for row in rows]
    assert len(submitted) == 500
    assert submitted[-1] == "Task 499"
    assert max(len(rows) for table, rows in storage.insert_calls if table == "board_tasks") == 50


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Partial failure
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_bulk_import_failed_batch_is_skipped(storage, board_columns, board_labels, team_members, fast_settings):
    storage.fail_next("board_tasks", when=lambda row: row["title"] == "Task 60")

    result = _import(storage, _numbered_tasks(120), board_columns, board_labels, team_members, fast_settings)

    assert result.created == 70
    assert result.errors == ["Batch 2 failed: write failed"]
    titles = [t["title"] for t in storage.rows("board_tasks")]
    assert "Task 60" not in titles
    assert "Task 119" in titles
    assert len(storage.rows("board_task_activity")) == 70


def test_bulk_import_column_failure_is_fatal(storage, board_columns, board_labels, team_members, fast_settings):
    storage.fail_next("board_columns", message="permission denied")
    tasks = [ImportTask(title="A", column_name="Research")]

    with pytest.raises(ColumnCreationError, match="permission denied"):
        _import(storage, tasks, board_columns, board_labels, team_members, fast_settings, {"Research": NEW_COLUMN})

    assert storage.rows("board_tasks") == []


def test_bulk_import_label_failure_is_recorded(storage, board_columns, board_labels, team_members, fast_settings):
    storage.fail_next("board_labels")
    tasks = [ImportTask(title="A", labels=["Bug", "New label"])]

    result = _import(storage, tasks, board_columns, board_labels, team_members, fast_settings)

    assert result.created == 1
    assert result.errors == ["Failed to create labels: write failed"]
    assert [r["label_id"] for r in storage.rows("board_task_labels")] == ["label-bug"]


def test_bulk_import_side_channel_failures(storage, board_columns, board_labels, team_members, fast_settings):
    """Checklist failures are reported; activity log failures are only logged"""
    storage.fail_next("board_checklist_items")
    storage.fail_next("board_task_activity")
    tasks = [ImportTask(title="A", checklist_items=["x"])]

    result = _import(storage, tasks, board_columns, board_labels, team_members, fast_settings)

    assert result.created == 1
    assert result.errors == ["Checklist batch failed: write failed"]
    assert storage.rows("board_task_activity") == []
