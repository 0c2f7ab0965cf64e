"""
FastAPI dependencies shared by the routers.
"""
import logging

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .database import SessionLocal, get_db
from .services.board_service import BoardSnapshot, load_board_snapshot
from .services.board_storage import BoardStorage

logger = logging.getLogger(__name__)


def get_board_storage() -> BoardStorage:
    """Storage client used by the import engine (overridden in tests)."""
    return BoardStorage(SessionLocal)


def get_import_settings() -> Settings:
    return get_settings()


def get_board_snapshot(idea_id: str, db: Session = Depends(get_db)) -> BoardSnapshot:
    """
    Current state of the idea's board.

    Raises:
        HTTPException 404: the board has no columns to import into
    """
    snapshot = load_board_snapshot(db, idea_id)
    if not snapshot.columns:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Board not found or has no columns",
        )
    return snapshot
