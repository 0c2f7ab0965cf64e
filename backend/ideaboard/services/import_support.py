"""
Building blocks shared by the bulk and sequential import strategies:
column/assignee resolution, label planning, position bookkeeping and
fire-and-forget activity writes.
"""
import asyncio
import logging
from functools import partial
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from ..models.board import POSITION_GAP, LABEL_COLORS
from ..schemas.board_import import (
    NEW_COLUMN,
    ImportTask,
    BoardColumnSnapshot,
    BoardLabelSnapshot,
    TeamMember,
    ColumnMapping,
)
from .board_storage import BoardStorage

logger = logging.getLogger(__name__)

ACTIVITY_ACTION = "bulk_imported"

# Strong references to in-flight background writes (the loop only keeps weak ones)
_background_writes: Set[asyncio.Task] = set()


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def resolve_column_id(task: ImportTask, column_mapping: ColumnMapping, default_column_id: str) -> str:
    """Target column for a task; unmapped or still-unresolved names fall back to the default."""
    if task.column_name:
        column_id = column_mapping.get(task.column_name)
        if column_id and column_id != NEW_COLUMN:
            return column_id
    return default_column_id


def build_assignee_map(team_members: Sequence[TeamMember]) -> Dict[str, str]:
    """Lowercased full name and email -> user id."""
    assignees: Dict[str, str] = {}
    for member in team_members:
        if member.full_name:
            assignees[member.full_name.lower()] = member.id
        if member.email:
            assignees[member.email.lower()] = member.id
    return assignees


def resolve_assignee(task: ImportTask, assignees: Dict[str, str]) -> Optional[str]:
    if not task.assignee_name:
        return None
    return assignees.get(task.assignee_name.lower())


def next_column_position(existing_columns: Sequence[BoardColumnSnapshot]) -> int:
    """Position for the first column appended after the existing ones."""
    if not existing_columns:
        return 0
    return max(c.position for c in existing_columns) + POSITION_GAP


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------

def collect_label_names(tasks: Iterable[ImportTask]) -> List[str]:
    """Every label name referenced by the tasks, first-seen order, exact duplicates removed."""
    names: List[str] = []
    seen = set()
    for task in tasks:
        for name in task.labels or []:
            if name not in seen:
                seen.add(name)
                names.append(name)
    return names


def build_label_map(labels: Sequence[BoardLabelSnapshot]) -> Dict[str, str]:
    """Lowercased label name -> label id."""
    return {label.name.lower(): label.id for label in labels}


def plan_new_labels(
    tasks: Sequence[ImportTask],
    idea_id: str,
    existing_labels: Sequence[BoardLabelSnapshot],
) -> List[Dict[str, Any]]:
    """
    Rows for labels referenced by the tasks but missing from the board.

    Colors cycle through the palette starting after the labels already on the
    board, so repeated imports spread colors evenly.
    """
    known = set(build_label_map(existing_labels))
    rows: List[Dict[str, Any]] = []
    color_index = len(existing_labels) % len(LABEL_COLORS)

    for name in collect_label_names(tasks):
        if name.lower() in known:
            continue
        known.add(name.lower())
        rows.append({
            "idea_id": idea_id,
            "name": name,
            "color": LABEL_COLORS[color_index % len(LABEL_COLORS)],
        })
        color_index += 1

    return rows


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------

class PositionTracker:
    """
    Running task position per column.

    A column is seeded from its highest existing task position (or -gap when
    empty) and every placed task advances it by the gap, in source order.
    """

    def __init__(self, columns: Sequence[BoardColumnSnapshot], gap: int = POSITION_GAP):
        self.gap = gap
        self._columns = {c.id: c for c in columns}
        self._last: Dict[str, int] = {}

    def seed(self, column_id: str) -> int:
        if column_id not in self._last:
            column = self._columns.get(column_id)
            highest = column.max_task_position if column else None
            self._last[column_id] = highest if highest is not None else -self.gap
        return self._last[column_id]

    def peek(self, column_id: str) -> int:
        return self.seed(column_id) + self.gap

    def advance(self, column_id: str) -> int:
        position = self.peek(column_id)
        self._last[column_id] = position
        return position


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------

def build_task_row(
    task: ImportTask,
    idea_id: str,
    column_id: str,
    position: int,
    assignee_id: Optional[str],
) -> Dict[str, Any]:
    return {
        "idea_id": idea_id,
        "column_id": column_id,
        "title": task.title,
        "description": task.description,
        "assignee_id": assignee_id,
        "position": position,
        "due_date": task.due_date,
    }


def build_task_label_rows(task: ImportTask, task_id: str, label_map: Dict[str, str]) -> List[Dict[str, Any]]:
    rows = []
    linked = set()
    for name in task.labels or []:
        label_id = label_map.get(name.lower())
        if label_id and label_id not in linked:
            linked.add(label_id)
            rows.append({"task_id": task_id, "label_id": label_id})
    return rows


def build_checklist_rows(task: ImportTask, task_id: str, idea_id: str) -> List[Dict[str, Any]]:
    return [
        {"task_id": task_id, "idea_id": idea_id, "title": title, "position": index * POSITION_GAP}
        for index, title in enumerate(task.checklist_items or [])
    ]


def build_activity_row(task_id: str, idea_id: str, actor_id: str) -> Dict[str, Any]:
    return {
        "task_id": task_id,
        "idea_id": idea_id,
        "actor_id": actor_id,
        "action": ACTIVITY_ACTION,
        "details": None,
    }


# ---------------------------------------------------------------------------
# Fire-and-forget activity log
# ---------------------------------------------------------------------------

async def _write_activity(storage: BoardStorage, rows: List[Dict[str, Any]]) -> None:
    result = await storage.insert("board_task_activity", rows)
    if result.error:
        logger.error(f"[Import] Activity log failed: {result.error.message}")


def log_activity_in_background(storage: BoardStorage, rows: List[Dict[str, Any]]) -> None:
    """Schedule an activity write without awaiting it; failures are only logged."""
    if not rows:
        return
    task = asyncio.create_task(_write_activity(storage, rows))
    _background_writes.add(task)
    task.add_done_callback(partial(_background_write_done, len(rows)))


def _background_write_done(row_count: int, task: asyncio.Task) -> None:
    _background_writes.discard(task)
    if task.cancelled():
        logger.warning(f"[Import] Activity log write cancelled ({row_count} rows)")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"[Import] Activity log write crashed: {exc}")


async def drain_background_writes() -> None:
    """Wait for pending activity writes (used on shutdown and in tests)."""
    if _background_writes:
        await asyncio.gather(*list(_background_writes), return_exceptions=True)


def chunked(rows: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]
