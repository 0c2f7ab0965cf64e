"""
Kanban board models - columns, labels, tasks and their satellites.

Every board entity is scoped by idea_id; the board itself belongs to an idea.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship

from ..database import Base

# Positions are sparse: siblings are spaced by this gap so items can be
# inserted between them without renumbering.
POSITION_GAP = 1000

# Label palette, cycled when labels are created automatically
LABEL_COLORS = [
    "red", "orange", "amber", "yellow", "lime", "green",
    "blue", "cyan", "violet", "purple", "pink", "rose",
]


class BoardColumn(Base):
    """A kanban column (list)."""

    __tablename__ = "board_columns"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    idea_id = Column(String(36), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    is_done_column = Column(Boolean, default=False)

    tasks = relationship("BoardTask", back_populates="column")

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<BoardColumn {self.title} @{self.position}>"


class BoardLabel(Base):
    """A colored label that can be attached to tasks."""

    __tablename__ = "board_labels"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    idea_id = Column(String(36), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    color = Column(String(20), nullable=False, default="blue")

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<BoardLabel {self.name} ({self.color})>"


class BoardTask(Base):
    """A task card living in a column."""

    __tablename__ = "board_tasks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    idea_id = Column(String(36), nullable=False, index=True)
    column_id = Column(String(36), ForeignKey("board_columns.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    assignee_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    due_date = Column(String(10), nullable=True)  # ISO date (YYYY-MM-DD)

    column = relationship("BoardColumn", back_populates="tasks")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<BoardTask {self.title}>"


class BoardTaskLabel(Base):
    """Task <-> label join row."""

    __tablename__ = "board_task_labels"

    task_id = Column(String(36), ForeignKey("board_tasks.id", ondelete="CASCADE"), primary_key=True)
    label_id = Column(String(36), ForeignKey("board_labels.id", ondelete="CASCADE"), primary_key=True)


class BoardChecklistItem(Base):
    """A checklist entry on a task."""

    __tablename__ = "board_checklist_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    task_id = Column(String(36), ForeignKey("board_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    idea_id = Column(String(36), nullable=False)
    title = Column(String(500), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)


class BoardTaskActivity(Base):
    """Audit trail entry for a task (who did what)."""

    __tablename__ = "board_task_activity"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    task_id = Column(String(36), ForeignKey("board_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    idea_id = Column(String(36), nullable=False)
    actor_id = Column(String(36), nullable=False)
    action = Column(String(50), nullable=False)  # e.g. bulk_imported
    details = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
