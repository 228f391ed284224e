"""Individual turns of a conversation thread."""
from uuid import uuid4
import enum

from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, JSON, Enum
from sqlalchemy.orm import relationship

from .threads import Base, utcnow


class MessageType(str, enum.Enum):
    """Kind of turn recorded in a thread."""
    QUESTION = "question"
    ANSWER = "answer"
    SUMMARY = "summary"
    ACTION_PLAN = "action_plan"
    COACHING = "coaching"


class ConversationMessage(Base):
    """
    SQLAlchemy model for a single turn within a thread.

    Rows are only ever appended; deleting the owning thread removes them.
    """
    __tablename__ = "conversation_messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    thread_id = Column(
        String(36),
        ForeignKey("conversation_threads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(
        Enum(MessageType, values_callable=lambda e: [m.value for m in e], name="message_type"),
        nullable=False,
    )
    position = Column(Integer, nullable=False)  # ordinal within the thread
    content = Column(Text, nullable=False)
    message_metadata = Column(JSON, nullable=True)  # e.g. {"index": 0} or {"role": "user"}
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    thread = relationship("ConversationThread", back_populates="messages")
