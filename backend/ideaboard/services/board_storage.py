"""
Storage client for board writes.

The import engine never talks to SQLAlchemy directly: it is handed a
BoardStorage and gets back StorageResult values (rows or an error), so a
failed write is data the orchestrator can record instead of an exception.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..models import (
    BoardColumn,
    BoardLabel,
    BoardTask,
    BoardTaskLabel,
    BoardChecklistItem,
    BoardTaskActivity,
)

logger = logging.getLogger(__name__)

TABLES = {
    "board_columns": BoardColumn,
    "board_labels": BoardLabel,
    "board_tasks": BoardTask,
    "board_task_labels": BoardTaskLabel,
    "board_checklist_items": BoardChecklistItem,
    "board_task_activity": BoardTaskActivity,
}


@dataclass
class StorageError:
    message: str


@dataclass
class StorageResult:
    """Rows written/read, or the error that prevented it."""
    data: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[StorageError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoardStorage:
    """
    SQLAlchemy-backed storage client: one short-lived session per call.

    Session work runs in the threadpool so a long import never blocks the
    event loop.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def insert(
        self,
        table: str,
        rows: Sequence[Dict[str, Any]],
        returning: Optional[Sequence[str]] = None,
    ) -> StorageResult:
        """
        Insert rows in a single transaction.

        Returns the `returning` columns of every written row, in input order.
        """
        model = TABLES.get(table)
        if model is None:
            return StorageResult(error=StorageError(f"Unknown table: {table}"))
        return await run_in_threadpool(self._insert, model, table, rows, returning)

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        columns: Optional[Sequence[str]] = None,
    ) -> StorageResult:
        """Select rows matching all equality filters."""
        model = TABLES.get(table)
        if model is None:
            return StorageResult(error=StorageError(f"Unknown table: {table}"))
        return await run_in_threadpool(self._select, model, table, filters, columns)

    def _insert(self, model, table: str, rows, returning) -> StorageResult:
        db: Session = self._session_factory()
        try:
            instances = [model(**row) for row in rows]
            db.add_all(instances)
            db.commit()
            data = [_row_to_dict(instance, returning) for instance in instances]
            return StorageResult(data=data)
        except (SQLAlchemyError, TypeError) as e:
            db.rollback()
            logger.warning(f"[Storage] Insert into {table} failed: {e}")
            return StorageResult(error=StorageError(str(e)))
        finally:
            db.close()

    def _select(self, model, table: str, filters, columns) -> StorageResult:
        db: Session = self._session_factory()
        try:
            query = db.query(model)
            for name, value in (filters or {}).items():
                query = query.filter(getattr(model, name) == value)
            return StorageResult(data=[_row_to_dict(obj, columns) for obj in query.all()])
        except (SQLAlchemyError, AttributeError) as e:
            logger.warning(f"[Storage] Select from {table} failed: {e}")
            return StorageResult(error=StorageError(str(e)))
        finally:
            db.close()


def _row_to_dict(instance, columns: Optional[Sequence[str]]) -> Dict[str, Any]:
    names = columns or [c.name for c in instance.__table__.columns]
    return {name: getattr(instance, name) for name in names}
