"""
Sequential board import: one task at a time with live per-task callbacks,
cooperative cancellation and a fixed throttle between writes.

Used when tasks should appear on the board progressively (for example while
they are being generated) instead of in one burst.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import Settings, get_settings
from ..models.board import POSITION_GAP
from ..schemas.board_import import (
    NEW_COLUMN,
    ImportTask,
    BoardColumnSnapshot,
    BoardLabelSnapshot,
    TeamMember,
    ColumnMapping,
    FailedTask,
    TaskWarning,
    SetupStats,
    SequentialInsertResult,
)
from .board_import_service import ImportSetupError
from .board_storage import BoardStorage
from .import_support import (
    PositionTracker,
    build_activity_row,
    build_assignee_map,
    build_checklist_rows,
    build_label_map,
    build_task_label_rows,
    build_task_row,
    log_activity_in_background,
    next_column_position,
    plan_new_labels,
    resolve_assignee,
    resolve_column_id,
)

logger = logging.getLogger(__name__)


@dataclass
class SequentialCallbacks:
    """Hooks fired while the sequential import runs. All optional."""
    on_task_created: Optional[Callable[[int, str], None]] = None
    on_task_error: Optional[Callable[[int, str, str], None]] = None
    on_setup_complete: Optional[Callable[[SetupStats], None]] = None
    on_task_warning: Optional[Callable[[int, str, str], None]] = None


class CancellationToken:
    """Polled once per task; cancelling never interrupts an in-flight write."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def _name_key(value: Any) -> str:
    return str(value or "").lower().strip()


async def upsert_by_name(
    storage: BoardStorage,
    table: str,
    idea_id: str,
    rows: Sequence[Dict[str, Any]],
    name_field: str,
    retry_delay: float,
    known_ids: Iterable[str] = (),
) -> Tuple[Dict[str, str], int]:
    """
    Insert rows, retrying once after a failure.

    Before the retry the board is re-read by name: rows a failed attempt
    managed to write are reused and only the remainder is inserted. Rows in
    `known_ids` (already on the board when the import started) are never
    reused, so an explicit "create new" choice still creates a row.

    Returns (normalized name -> id, number of rows created).

    Raises:
        ImportSetupError: the retry (or the re-read before it) failed too
    """
    result = await storage.insert(table, rows, returning=("id", name_field))
    if result.ok:
        return {_name_key(row[name_field]): row["id"] for row in result.data}, len(result.data)

    logger.warning(f"[Import] Writing {table} failed, reconciling: {result.error.message}")
    await asyncio.sleep(retry_delay)

    existing = await storage.select(table, filters={"idea_id": idea_id}, columns=("id", name_field))
    if existing.error:
        raise ImportSetupError(f"Failed to create {table}: {existing.error.message}")

    skip = set(known_ids)
    wanted = {_name_key(row[name_field]) for row in rows}
    resolved: Dict[str, str] = {}
    for row in existing.data:
        key = _name_key(row[name_field])
        if key in wanted and row["id"] not in skip:
            resolved.setdefault(key, row["id"])

    remaining = [row for row in rows if _name_key(row[name_field]) not in resolved]
    if remaining:
        result = await storage.insert(table, remaining, returning=("id", name_field))
        if result.error:
            raise ImportSetupError(f"Failed to create {table}: {result.error.message}")
        for row in result.data:
            resolved[_name_key(row[name_field])] = row["id"]

    return resolved, len(resolved)


async def ensure_columns(
    storage: BoardStorage,
    idea_id: str,
    existing_columns: Sequence[BoardColumnSnapshot],
    column_mapping: ColumnMapping,
    retry_delay: float,
) -> int:
    """Resolve every NEW_COLUMN entry of the mapping in place; returns how many columns were created."""
    new_names = [name for name, target in column_mapping.items() if target == NEW_COLUMN]
    if not new_names:
        return 0

    start = next_column_position(existing_columns)
    rows = [
        {"idea_id": idea_id, "title": name, "position": start + i * POSITION_GAP}
        for i, name in enumerate(new_names)
    ]
    ids, created = await upsert_by_name(
        storage, "board_columns", idea_id, rows, "title", retry_delay,
        known_ids=[c.id for c in existing_columns],
    )

    for name in new_names:
        column_id = ids.get(_name_key(name))
        if column_id:
            column_mapping[name] = column_id
    return created


async def ensure_labels(
    storage: BoardStorage,
    tasks: Sequence[ImportTask],
    idea_id: str,
    existing_labels: Sequence[BoardLabelSnapshot],
    retry_delay: float,
) -> Tuple[Dict[str, str], int]:
    """
    Lowercased label name -> id for every label the tasks use, creating missing ones.

    Labels are decoration: if they cannot be created the import continues
    with whatever labels already exist.
    """
    label_map = build_label_map(existing_labels)
    rows = plan_new_labels(tasks, idea_id, existing_labels)
    if not rows:
        return label_map, 0

    try:
        ids, created = await upsert_by_name(
            storage, "board_labels", idea_id, rows, "name", retry_delay,
            known_ids=[label.id for label in existing_labels],
        )
    except ImportSetupError as e:
        logger.error(f"[Import] {e}; continuing without new labels")
        return label_map, 0

    label_map.update(ids)
    return label_map, created


async def _insert_task_with_retry(
    storage: BoardStorage,
    row: Dict[str, Any],
    retry_delay: float,
) -> Tuple[Optional[str], str]:
    """Returns (task id, "") on success or (None, error message)."""
    result = await storage.insert("board_tasks", [row], returning=("id",))
    if result.error:
        logger.warning(f"[Import] Task '{row['title']}' failed, retrying: {result.error.message}")
        await asyncio.sleep(retry_delay)
        result = await storage.insert("board_tasks", [row], returning=("id",))

    if result.error:
        return None, result.error.message
    if not result.data:
        return None, "Task insert returned no row"
    return result.data[0]["id"], ""


async def insert_tasks_sequentially(
    storage: BoardStorage,
    tasks: Sequence[ImportTask],
    idea_id: str,
    actor_id: str,
    existing_columns: Sequence[BoardColumnSnapshot],
    column_mapping: ColumnMapping,
    default_column_id: str,
    existing_labels: Sequence[BoardLabelSnapshot],
    team_members: Sequence[TeamMember],
    callbacks: Optional[SequentialCallbacks] = None,
    signal: Optional[CancellationToken] = None,
    settings: Optional[Settings] = None,
) -> SequentialInsertResult:
    """
    Insert tasks one by one in source order.

    A task that fails twice is reported through on_task_error and the run
    moves on. Cancellation is checked before each task and leaves already
    written tasks in place.

    Raises:
        ImportSetupError: required columns could not be created after retry
    """
    settings = settings or get_settings()
    callbacks = callbacks or SequentialCallbacks()
    retry_delay = settings.import_retry_delay_seconds
    result = SequentialInsertResult()

    # Setup: columns, labels, assignees
    result.columns_created = await ensure_columns(
        storage, idea_id, existing_columns, column_mapping, retry_delay
    )
    label_map, result.labels_created = await ensure_labels(
        storage, tasks, idea_id, existing_labels, retry_delay
    )
    assignees = build_assignee_map(team_members)
    positions = PositionTracker(existing_columns)

    logger.info(
        f"[Import] Setup for idea {idea_id} done: "
        f"{result.columns_created} columns, {result.labels_created} labels created"
    )
    if callbacks.on_setup_complete:
        callbacks.on_setup_complete(SetupStats(columns=result.columns_created, labels=result.labels_created))

    last_index = len(tasks) - 1
    for index, task in enumerate(tasks):
        if signal is not None and signal.cancelled:
            logger.info(f"[Import] Cancelled after {index} of {len(tasks)} tasks")
            break

        column_id = resolve_column_id(task, column_mapping, default_column_id)
        row = build_task_row(
            task,
            idea_id,
            column_id,
            positions.peek(column_id),
            resolve_assignee(task, assignees),
        )

        task_id, error = await _insert_task_with_retry(storage, row, retry_delay)
        if task_id is None:
            result.failed.append(FailedTask(index=index, title=task.title, error=error))
            if callbacks.on_task_error:
                callbacks.on_task_error(index, task.title, error)
        else:
            positions.advance(column_id)
            result.created += 1
            for warning in await _insert_task_extras(storage, task, task_id, idea_id, label_map):
                result.warnings.append(TaskWarning(index=index, title=task.title, message=warning))
                if callbacks.on_task_warning:
                    callbacks.on_task_warning(index, task.title, warning)
            log_activity_in_background(storage, [build_activity_row(task_id, idea_id, actor_id)])
            if callbacks.on_task_created:
                callbacks.on_task_created(index, task.title)

        if index < last_index:
            await asyncio.sleep(settings.import_throttle_seconds)

    return result


async def _insert_task_extras(
    storage: BoardStorage,
    task: ImportTask,
    task_id: str,
    idea_id: str,
    label_map: Dict[str, str],
) -> List[str]:
    """
    Label links and checklist rows for a created task. Best-effort, not retried.

    Returns a warning message per failed write.
    """
    warnings: List[str] = []

    label_rows = build_task_label_rows(task, task_id, label_map)
    if label_rows:
        outcome = await storage.insert("board_task_labels", label_rows)
        if outcome.error:
            logger.warning(f"[Import] Labels for task {task_id} failed: {outcome.error.message}")
            warnings.append(f"Label assignment failed: {outcome.error.message}")

    checklist_rows: List[Dict[str, Any]] = build_checklist_rows(task, task_id, idea_id)
    if checklist_rows:
        outcome = await storage.insert("board_checklist_items", checklist_rows)
        if outcome.error:
            logger.warning(f"[Import] Checklist for task {task_id} failed: {outcome.error.message}")
            warnings.append(f"Checklist creation failed: {outcome.error.message}")

    return warnings
