"""
Business logic services.
"""
from .board_storage import BoardStorage, StorageResult, StorageError
from .board_import_service import execute_bulk_import, BoardImportError, ColumnCreationError, ImportSetupError
from .sequential_import_service import insert_tasks_sequentially, SequentialCallbacks, CancellationToken

__all__ = [
    "BoardStorage", "StorageResult", "StorageError",
    "execute_bulk_import", "BoardImportError", "ColumnCreationError", "ImportSetupError",
    "insert_tasks_sequentially", "SequentialCallbacks", "CancellationToken",
]
