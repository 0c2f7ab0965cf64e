"""
Read-side helpers: snapshot of a board as the import engine needs it.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from sqlalchemy.orm import Session

from ..models import BoardColumn, BoardLabel, BoardTask, User, IdeaMember
from ..schemas.board_import import BoardColumnSnapshot, BoardLabelSnapshot, TeamMember

logger = logging.getLogger(__name__)


@dataclass
class BoardSnapshot:
    columns: List[BoardColumnSnapshot] = field(default_factory=list)
    labels: List[BoardLabelSnapshot] = field(default_factory=list)
    team_members: List[TeamMember] = field(default_factory=list)


def load_board_snapshot(db: Session, idea_id: str) -> BoardSnapshot:
    """Columns (with their task positions), labels and team members of an idea's board."""
    columns = (
        db.query(BoardColumn)
        .filter(BoardColumn.idea_id == idea_id)
        .order_by(BoardColumn.position.asc())
        .all()
    )

    positions_by_column = {}
    task_rows = (
        db.query(BoardTask.column_id, BoardTask.position)
        .filter(BoardTask.idea_id == idea_id)
        .all()
    )
    for column_id, position in task_rows:
        positions_by_column.setdefault(column_id, []).append(position)

    labels = db.query(BoardLabel).filter(BoardLabel.idea_id == idea_id).all()

    members = (
        db.query(User)
        .join(IdeaMember, IdeaMember.user_id == User.id)
        .filter(IdeaMember.idea_id == idea_id, User.is_active == True)  # noqa: E712
        .all()
    )

    return BoardSnapshot(
        columns=[
            BoardColumnSnapshot(
                id=c.id,
                title=c.title,
                position=c.position,
                is_done_column=bool(c.is_done_column),
                task_positions=positions_by_column.get(c.id, []),
            )
            for c in columns
        ],
        labels=[BoardLabelSnapshot(id=l.id, name=l.name, color=l.color) for l in labels],
        team_members=[TeamMember(id=u.id, full_name=u.full_name, email=u.email) for u in members],
    )
