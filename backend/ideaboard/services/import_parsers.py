"""
Format adapters for board imports.

Every adapter turns one input shape into a list of ImportTask:
  - CSV (tokenizer + field mapping)
  - Trello board JSON export
  - custom JSON ({"tasks": [...]})
  - freeform bulleted text

Adapters are tolerant: malformed values are dropped, never raised.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import timezone
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from ..schemas.board_import import ImportTask, CsvFieldMapping
from .import_mapping import auto_detect_csv_mapping

logger = logging.getLogger(__name__)

LABEL_SEPARATORS = re.compile(r"[,;|]")
CHECKLIST_LINE = re.compile(r"^-\s*\[[ x]\]\s*(.+)$", re.IGNORECASE)
TITLE_PREFIX = re.compile(r"^(?:[-*]\s+|\d+\.\s+)")


class UnsupportedImportFormat(ValueError):
    """Raised when a payload cannot be recognized as any supported format."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_date_string(value: Any) -> Optional[str]:
    """Leniently parse a date/timestamp into an ISO date (UTC), or None if unparseable."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = date_parser.parse(value.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def _string_or_none(value: Any) -> Optional[str]:
    """Non-empty strings pass through; anything else (numbers, objects, "") is dropped."""
    if isinstance(value, str) and value:
        return value
    return None


def _dicts(values: Any) -> List[Dict[str, Any]]:
    if not isinstance(values, list):
        return []
    return [v for v in values if isinstance(v, dict)]


def _string_list(values: Any) -> Optional[List[str]]:
    if not isinstance(values, list):
        return None
    items = [v for v in values if isinstance(v, str) and v]
    return items or None


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def parse_csv(text: str) -> List[List[str]]:
    """
    Split CSV text into rows of trimmed fields.

    Commas and CR/LF only separate outside quotes, "" inside quotes is a
    literal quote, CRLF counts as one terminator and rows made only of
    empty fields are dropped. Never raises.
    """
    rows: List[List[str]] = []
    row: List[str] = []
    chars: List[str] = []
    in_quotes = False
    i = 0
    length = len(text)

    def end_field():
        row.append("".join(chars).strip())
        chars.clear()

    def end_row():
        nonlocal row
        end_field()
        if any(f != "" for f in row):
            rows.append(row)
        row = []

    while i < length:
        ch = text[i]

        if in_quotes:
            if ch == '"':
                if i + 1 < length and text[i + 1] == '"':
                    chars.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                chars.append(ch)
        elif ch == '"':
            in_quotes = True
        elif ch == ",":
            end_field()
        elif ch in "\r\n":
            if ch == "\r" and i + 1 < length and text[i + 1] == "\n":
                i += 1
            end_row()
        else:
            chars.append(ch)
        i += 1

    end_row()
    return rows


def csv_to_import_tasks(
    rows: List[List[str]],
    headers: List[str],
    mapping: CsvFieldMapping,
) -> List[ImportTask]:
    """Convert data rows (header row excluded) into tasks using the field mapping."""
    tasks: List[ImportTask] = []

    for row in rows:
        values: Dict[str, Any] = {}

        for index, value in enumerate(row):
            field_name = mapping.get(index, "skip")
            if not value or field_name == "skip":
                continue

            if field_name == "title":
                values["title"] = value
            elif field_name == "description":
                values["description"] = value
            elif field_name == "column":
                values["column_name"] = value
            elif field_name == "assignee":
                values["assignee_name"] = value
            elif field_name == "due_date":
                values["due_date"] = parse_date_string(value)
            elif field_name == "labels":
                labels = [part.strip() for part in LABEL_SEPARATORS.split(value)]
                values["labels"] = [label for label in labels if label]

        # Title is the only required field
        if values.get("title"):
            tasks.append(ImportTask(**values))

    return tasks


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def detect_json_format(data: Any) -> str:
    """Return "trello", "custom" or "unknown" from the payload's shape (trello wins ties)."""
    if not isinstance(data, dict):
        return "unknown"
    if isinstance(data.get("lists"), list) and isinstance(data.get("cards"), list):
        return "trello"
    if isinstance(data.get("tasks"), list):
        return "custom"
    return "unknown"


def parse_trello_json(data: Dict[str, Any]) -> List[ImportTask]:
    """
    Convert a Trello board export.

    Archived lists and cards are skipped; a card in an archived list keeps no
    column. Checklists are flattened in checklist-then-item order and item
    completion state is discarded.
    """
    list_names: Dict[str, Optional[str]] = {}
    for trello_list in _dicts(data.get("lists")):
        list_id = _string_or_none(trello_list.get("id"))
        if list_id and not trello_list.get("closed"):
            list_names[list_id] = _string_or_none(trello_list.get("name"))

    tasks: List[ImportTask] = []
    for card in _dicts(data.get("cards")):
        title = _string_or_none(card.get("name"))
        if card.get("closed") or not title:
            continue

        checklist_items: List[str] = []
        for checklist in _dicts(card.get("checklists")):
            for item in _dicts(checklist.get("checkItems")):
                name = _string_or_none(item.get("name"))
                if name:
                    checklist_items.append(name)

        labels = None
        if isinstance(card.get("labels"), list):
            labels = [
                label["name"] for label in _dicts(card["labels"])
                if _string_or_none(label.get("name"))
            ]

        tasks.append(ImportTask(
            title=title,
            description=_string_or_none(card.get("desc")),
            column_name=list_names.get(_string_or_none(card.get("idList"))),
            due_date=parse_date_string(card.get("due")),
            labels=labels,
            checklist_items=checklist_items or None,
        ))

    return tasks


def parse_custom_json(data: Dict[str, Any]) -> List[ImportTask]:
    """Convert the native {"tasks": [...]} format; tasks without a title are dropped."""
    tasks: List[ImportTask] = []
    for item in _dicts(data.get("tasks")):
        title = _string_or_none(item.get("title"))
        if not title:
            continue

        tasks.append(ImportTask(
            title=title,
            description=_string_or_none(item.get("description")),
            column_name=_string_or_none(item.get("column")),
            assignee_name=_string_or_none(item.get("assignee")),
            due_date=parse_date_string(item.get("due_date")),
            labels=_string_list(item.get("labels")),
            checklist_items=_string_list(item.get("checklist")),
        ))

    return tasks


# ---------------------------------------------------------------------------
# Bulk text
# ---------------------------------------------------------------------------

def parse_bulk_text(text: str) -> List[ImportTask]:
    """
    One task per line; "- [ ] item" / "- [x] item" lines attach to the last task.

    Checklist lines seen before any task are discarded.
    """
    drafts: List[Dict[str, Any]] = []
    current: Optional[Dict[str, Any]] = None

    for raw in text.split("\n"):
        line = raw.strip()
        if not line:
            continue

        checklist_match = CHECKLIST_LINE.match(line)
        if checklist_match:
            if current is not None:
                current["checklist_items"].append(checklist_match.group(1).strip())
            continue

        title = TITLE_PREFIX.sub("", line, count=1).strip()
        if title:
            current = {"title": title, "checklist_items": []}
            drafts.append(current)

    return [
        ImportTask(title=d["title"], checklist_items=d["checklist_items"] or None)
        for d in drafts
    ]


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

@dataclass
class ParsedImport:
    """Outcome of parsing a raw payload, before any mapping is confirmed."""
    format: str
    tasks: List[ImportTask]
    csv_headers: List[str] = field(default_factory=list)
    csv_mapping: CsvFieldMapping = field(default_factory=dict)


def parse_import_payload(kind: str, text: str) -> ParsedImport:
    """
    Parse a raw payload of the given kind ("csv", "json" or "text").

    CSV uses its first row as headers and the auto-detected field mapping.

    Raises:
        UnsupportedImportFormat: unknown kind or unrecognized JSON shape
        json.JSONDecodeError: payload declared as JSON is not valid JSON
    """
    if kind == "csv":
        rows = parse_csv(text)
        if not rows:
            return ParsedImport(format="csv", tasks=[])
        headers, data_rows = rows[0], rows[1:]
        mapping = auto_detect_csv_mapping(headers)
        return ParsedImport(
            format="csv",
            tasks=csv_to_import_tasks(data_rows, headers, mapping),
            csv_headers=headers,
            csv_mapping=mapping,
        )

    if kind == "json":
        data = json.loads(text)
        detected = detect_json_format(data)
        if detected == "trello":
            return ParsedImport(format="trello", tasks=parse_trello_json(data))
        if detected == "custom":
            return ParsedImport(format="custom", tasks=parse_custom_json(data))
        keys = sorted(data.keys()) if isinstance(data, dict) else type(data).__name__
        logger.warning(f"[Import] Unrecognized JSON payload: {keys}")
        raise UnsupportedImportFormat(
            "Unrecognized JSON format: expected a Trello export (lists + cards) or {\"tasks\": [...]}"
        )

    if kind == "text":
        return ParsedImport(format="text", tasks=parse_bulk_text(text))

    raise UnsupportedImportFormat(f"Unsupported import format: {kind}")
