"""
Bulk board import: materializes ImportTasks as columns, labels, tasks and
checklist items in batched writes.

The run is best-effort. A failed batch is recorded and skipped, later
batches still go through, and nothing is rolled back. The only fatal
condition is failing to create the columns the tasks need.
"""
import logging
from typing import Callable, Dict, List, Optional, Sequence

from ..config import Settings, get_settings
from ..models.board import POSITION_GAP
from ..schemas.board_import import (
    NEW_COLUMN,
    ImportTask,
    ImportProgress,
    BulkImportResult,
    BoardColumnSnapshot,
    BoardLabelSnapshot,
    TeamMember,
    ColumnMapping,
)
from .board_storage import BoardStorage
from .import_support import (
    PositionTracker,
    build_activity_row,
    build_assignee_map,
    build_checklist_rows,
    build_label_map,
    build_task_label_rows,
    build_task_row,
    chunked,
    log_activity_in_background,
    next_column_position,
    plan_new_labels,
    resolve_assignee,
    resolve_column_id,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]


class BoardImportError(Exception):
    """Base class for import failures that abort a whole run."""


class ColumnCreationError(BoardImportError):
    """The columns required by the import could not be created."""


class ImportSetupError(BoardImportError):
    """A setup write still failed after reconciliation and retry."""


async def create_new_columns(
    storage: BoardStorage,
    idea_id: str,
    existing_columns: Sequence[BoardColumnSnapshot],
    column_mapping: ColumnMapping,
) -> int:
    """
    Create every column mapped to NEW_COLUMN after the existing ones and
    rewrite the mapping in place with the new ids.

    Raises:
        ColumnCreationError: the insert failed
    """
    new_names = [name for name, target in column_mapping.items() if target == NEW_COLUMN]
    if not new_names:
        return 0

    start = next_column_position(existing_columns)
    rows = [
        {"idea_id": idea_id, "title": name, "position": start + i * POSITION_GAP}
        for i, name in enumerate(new_names)
    ]

    result = await storage.insert("board_columns", rows, returning=("id", "title"))
    if result.error:
        raise ColumnCreationError(f"Failed to create columns: {result.error.message}")

    created = {row["title"]: row["id"] for row in result.data}
    for name in new_names:
        if name in created:
            column_mapping[name] = created[name]

    logger.info(f"[Import] Created {len(result.data)} columns for idea {idea_id}")
    return len(result.data)


async def execute_bulk_import(
    storage: BoardStorage,
    tasks: Sequence[ImportTask],
    idea_id: str,
    actor_id: str,
    existing_columns: Sequence[BoardColumnSnapshot],
    column_mapping: ColumnMapping,
    default_column_id: str,
    existing_labels: Sequence[BoardLabelSnapshot],
    team_members: Sequence[TeamMember],
    on_progress: Optional[ProgressCallback] = None,
    settings: Optional[Settings] = None,
) -> BulkImportResult:
    """
    Import tasks in batches.

    Input beyond `import_max_tasks` is dropped silently. `created` counts
    rows actually written; `errors` collects a message per failed phase or
    batch.

    Raises:
        ColumnCreationError: new columns could not be created (nothing was imported)
    """
    settings = settings or get_settings()
    batch_size = settings.import_batch_size
    errors: List[str] = []

    capped = list(tasks[:settings.import_max_tasks])
    total = len(capped)
    if len(tasks) > total:
        logger.info(f"[Import] Truncated import from {len(tasks)} to {total} tasks")

    def report(phase: str, current: int):
        if on_progress:
            on_progress(ImportProgress(phase=phase, current=current, total=total))

    # Phase 1: columns (fatal on failure)
    report("Creating columns...", 0)
    await create_new_columns(storage, idea_id, existing_columns, column_mapping)

    # Phase 2: labels (best-effort)
    report("Processing labels...", 0)
    label_map = build_label_map(existing_labels)
    label_rows = plan_new_labels(capped, idea_id, existing_labels)
    if label_rows:
        result = await storage.insert("board_labels", label_rows, returning=("id", "name"))
        if result.error:
            logger.warning(f"[Import] Label creation failed: {result.error.message}")
            errors.append(f"Failed to create labels: {result.error.message}")
        else:
            for row in result.data:
                label_map[row["name"].lower()] = row["id"]

    # Phase 3: assignees
    assignees = build_assignee_map(team_members)

    # Phase 4: seed positions for every column that receives a task
    positions = PositionTracker(existing_columns)
    for task in capped:
        positions.seed(resolve_column_id(task, column_mapping, default_column_id))

    # Phase 5: tasks
    created = 0
    task_label_rows: List[Dict] = []
    checklist_rows: List[Dict] = []
    activity_rows: List[Dict] = []

    for batch_number, batch in enumerate(chunked(capped, batch_size), start=1):
        report("Importing tasks...", (batch_number - 1) * batch_size)

        inserts = []
        for task in batch:
            column_id = resolve_column_id(task, column_mapping, default_column_id)
            inserts.append(build_task_row(
                task,
                idea_id,
                column_id,
                positions.advance(column_id),
                resolve_assignee(task, assignees),
            ))

        result = await storage.insert("board_tasks", inserts, returning=("id",))
        if result.error:
            logger.warning(f"[Import] Task batch {batch_number} failed: {result.error.message}")
            errors.append(f"Batch {batch_number} failed: {result.error.message}")
            continue

        task_ids = [row["id"] for row in result.data]
        created += len(task_ids)

        for task, task_id in zip(batch, task_ids):
            task_label_rows.extend(build_task_label_rows(task, task_id, label_map))
            checklist_rows.extend(build_checklist_rows(task, task_id, idea_id))
            activity_rows.append(build_activity_row(task_id, idea_id, actor_id))

    # Phase 6: label associations and checklist items (best-effort)
    if task_label_rows:
        report("Assigning labels...", total)
        for batch in chunked(task_label_rows, batch_size):
            result = await storage.insert("board_task_labels", batch)
            if result.error:
                logger.warning(f"[Import] Label assignment batch failed: {result.error.message}")
                errors.append(f"Label assignment batch failed: {result.error.message}")

    if checklist_rows:
        report("Creating checklists...", total)
        for batch in chunked(checklist_rows, batch_size):
            result = await storage.insert("board_checklist_items", batch)
            if result.error:
                logger.warning(f"[Import] Checklist batch failed: {result.error.message}")
                errors.append(f"Checklist batch failed: {result.error.message}")

    # Phase 7: activity log (fire-and-forget)
    for batch in chunked(activity_rows, batch_size):
        log_activity_in_background(storage, list(batch))

    report("Done!", total)
    logger.info(f"[Import] Bulk import for idea {idea_id}: {created}/{total} created, {len(errors)} errors")

    return BulkImportResult(created=created, errors=errors)
