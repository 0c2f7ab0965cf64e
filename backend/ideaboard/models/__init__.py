"""
SQLAlchemy models for the idea board.
"""
from .user import User, IdeaMember
from .board import (
    BoardColumn,
    BoardLabel,
    BoardTask,
    BoardTaskLabel,
    BoardChecklistItem,
    BoardTaskActivity,
)

__all__ = [
    "User",
    "IdeaMember",
    "BoardColumn",
    "BoardLabel",
    "BoardTask",
    "BoardTaskLabel",
    "BoardChecklistItem",
    "BoardTaskActivity",
]
