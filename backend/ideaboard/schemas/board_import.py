"""
Board import schemas: the canonical ImportTask, board snapshots handed to the
orchestrators, progress/result records and API payloads.
"""
from typing import Optional, List, Dict, Literal
from pydantic import BaseModel, Field


# Sentinel target in a ColumnMapping: "this source column must be created"
NEW_COLUMN = "__new__"

CsvField = Literal["title", "description", "column", "assignee", "due_date", "labels", "skip"]

# zero-based CSV column index -> canonical field
CsvFieldMapping = Dict[int, CsvField]

# source column name -> existing column id | NEW_COLUMN
ColumnMapping = Dict[str, str]


# --- Canonical task ---

class ImportTask(BaseModel):
    """One task as produced by every format adapter."""
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    column_name: Optional[str] = None
    assignee_name: Optional[str] = None
    due_date: Optional[str] = None  # ISO date (YYYY-MM-DD)
    labels: Optional[List[str]] = None
    checklist_items: Optional[List[str]] = None

    class Config:
        frozen = True


# --- Board snapshots ---

class BoardColumnSnapshot(BaseModel):
    id: str
    title: str
    position: int
    is_done_column: bool = False
    task_positions: List[int] = []

    @property
    def max_task_position(self) -> Optional[int]:
        return max(self.task_positions) if self.task_positions else None


class BoardLabelSnapshot(BaseModel):
    id: str
    name: str
    color: str


class TeamMember(BaseModel):
    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None


# --- Progress / results ---

class ImportProgress(BaseModel):
    phase: str
    current: int
    total: int


class BulkImportResult(BaseModel):
    created: int = 0
    errors: List[str] = []


class FailedTask(BaseModel):
    index: int
    title: str
    error: str


class TaskWarning(BaseModel):
    """A created task whose labels or checklist could not be written."""
    index: int
    title: str
    message: str


class SetupStats(BaseModel):
    """How many columns/labels the setup phase actually created."""
    columns: int = 0
    labels: int = 0


class SequentialInsertResult(BaseModel):
    created: int = 0
    failed: List[FailedTask] = []
    warnings: List[TaskWarning] = []
    columns_created: int = 0
    labels_created: int = 0


# --- API payloads ---

class ImportPreviewResponse(BaseModel):
    """Parsed tasks plus the mappings suggested for the target board."""
    format: str  # csv | trello | custom | text
    tasks: List[ImportTask]
    csv_headers: List[str] = []
    csv_mapping: Dict[int, str] = {}
    column_names: List[str] = []
    column_mapping: Dict[str, str] = {}


class BulkImportRequest(BaseModel):
    actor_id: str
    tasks: List[ImportTask] = Field(..., min_length=1)
    column_mapping: Dict[str, str] = {}
    default_column_id: str


class BulkImportResponse(BulkImportResult):
    submitted: int  # Tasks considered after capping


class SequentialImportRequest(BaseModel):
    actor_id: str
    tasks: List[ImportTask] = Field(..., min_length=1)
    column_mapping: Dict[str, str] = {}
    default_column_id: str
