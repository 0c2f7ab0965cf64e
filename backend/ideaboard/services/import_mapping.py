"""
Mapping heuristics for board imports.

- CSV header -> canonical task field (alias table, case-insensitive)
- source column name -> existing board column (exact, case-insensitive)

Both results are suggestions; the caller may override them before executing.
"""
from typing import Dict, List, Sequence

from ..schemas.board_import import (
    NEW_COLUMN,
    ImportTask,
    BoardColumnSnapshot,
    CsvFieldMapping,
    ColumnMapping,
)

# ---------------------------------------------------------------------------
# CSV header aliases
# Each canonical field has a list of header spellings (matched case-insensitively).
# ---------------------------------------------------------------------------
FIELD_ALIASES: Dict[str, List[str]] = {
    "title": ["title", "name", "task", "task name", "summary"],
    "description": ["description", "desc", "details", "notes"],
    "column": ["column", "status", "list", "stage"],
    "assignee": ["assignee", "assigned", "assigned to", "owner"],
    "due_date": ["due date", "due", "deadline", "date"],
    "labels": ["labels", "tags", "label", "tag", "category"],
}


def _build_alias_lookup() -> Dict[str, str]:
    """Build a reverse lookup: normalized alias -> canonical field."""
    lookup: Dict[str, str] = {}
    for field, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            lookup[alias.lower().strip()] = field
    return lookup


HEADER_ALIASES = _build_alias_lookup()


def auto_detect_csv_mapping(headers: Sequence[str]) -> CsvFieldMapping:
    """
    Map every header index to a canonical field.

    Each field can be claimed by one column only: the first header wins and
    later duplicates fall back to "skip", as do unrecognized headers.
    """
    mapping: CsvFieldMapping = {}
    used_fields: set = set()

    for index, header in enumerate(headers):
        field = HEADER_ALIASES.get(header.lower().strip())
        if field and field not in used_fields:
            mapping[index] = field
            used_fields.add(field)
        else:
            mapping[index] = "skip"

    return mapping


def auto_map_columns(
    source_names: Sequence[str],
    existing_columns: Sequence[BoardColumnSnapshot],
) -> ColumnMapping:
    """Point each source column at an existing column with the same title, or at NEW_COLUMN."""
    by_title: Dict[str, str] = {}
    for column in existing_columns:
        by_title.setdefault(column.title.lower().strip(), column.id)

    return {
        name: by_title.get(name.lower().strip(), NEW_COLUMN)
        for name in source_names
    }


def get_unique_column_names(tasks: Sequence[ImportTask]) -> List[str]:
    """Distinct column names referenced by the tasks, in first-seen order."""
    names: List[str] = []
    seen = set()
    for task in tasks:
        if task.column_name and task.column_name not in seen:
            seen.add(task.column_name)
            names.append(task.column_name)
    return names
