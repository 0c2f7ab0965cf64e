"""
User and IdeaMember models - the people a board task can be assigned to.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base


class User(Base):
    """Application user."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    memberships = relationship("IdeaMember", back_populates="user")

    def __repr__(self):
        return f"<User {self.email}>"


class IdeaMember(Base):
    """Links a user to the idea whose board they collaborate on."""

    __tablename__ = "idea_members"

    idea_id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role = Column(String(20), default="collaborator")

    user = relationship("User", back_populates="memberships")
