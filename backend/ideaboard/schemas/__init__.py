"""
Pydantic schemas for request/response validation.
"""
from .board_import import (
    NEW_COLUMN,
    ImportTask,
    BoardColumnSnapshot,
    BoardLabelSnapshot,
    TeamMember,
    ImportProgress,
    BulkImportResult,
    FailedTask,
    TaskWarning,
    SetupStats,
    SequentialInsertResult,
    ImportPreviewResponse,
    BulkImportRequest,
    BulkImportResponse,
    SequentialImportRequest,
)

__all__ = [
    "NEW_COLUMN",
    "ImportTask", "BoardColumnSnapshot", "BoardLabelSnapshot", "TeamMember",
    "ImportProgress", "BulkImportResult", "FailedTask", "TaskWarning", "SetupStats", "SequentialInsertResult",
    "ImportPreviewResponse", "BulkImportRequest", "BulkImportResponse", "SequentialImportRequest",
]
