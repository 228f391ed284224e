"""Conversation thread model: one row per thinking session."""
from datetime import datetime, timezone
from uuid import uuid4
import enum

from sqlalchemy import Column, String, DateTime, Text, Enum
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThreadStatus(str, enum.Enum):
    """Lifecycle status of a conversation thread."""
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ConversationThread(Base):
    """
    SQLAlchemy model for conversation threads.

    The question/answer pairs and the coaching chat are stored as JSON text
    so a thread row can be rewritten wholesale on every save. The same
    entries are also decomposed into ConversationMessage rows.
    """
    __tablename__ = "conversation_threads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()), index=True)
    user_id = Column(String, nullable=True, index=True)  # null for anonymous sessions
    title = Column(String(255), nullable=False)
    problem = Column(Text, nullable=False)
    questions = Column(Text, nullable=False, default="[]")
    summary = Column(Text, nullable=True)
    action_plan = Column(Text, nullable=True)
    coaching_messages = Column(Text, nullable=False, default="[]")
    status = Column(
        Enum(ThreadStatus, values_callable=lambda e: [m.value for m in e], name="thread_status"),
        default=ThreadStatus.ACTIVE,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    messages = relationship(
        "ConversationMessage",
        back_populates="thread",
        order_by="ConversationMessage.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
