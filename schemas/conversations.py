"""Pydantic schemas for conversation threads and their turns."""
from datetime import datetime
from typing import Optional, List, Dict, Any
import enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.threads import ThreadStatus
from models.messages import MessageType


class CamelModel(BaseModel):
    """Base schema that reads snake_case and speaks camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CoachingRole(str, enum.Enum):
    """Author of a coaching chat message."""
    USER = "user"
    ASSISTANT = "assistant"


class QuestionAnswer(CamelModel):
    """One Socratic question and the user's answer to it."""
    question: str
    answer: str


class CoachingMessage(CamelModel):
    """One message of the open coaching chat."""
    role: CoachingRole
    content: str


class MessageResponse(CamelModel):
    """Schema for a decomposed thread turn."""
    id: str
    thread_id: str
    type: MessageType
    position: int
    content: str
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="message_metadata")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ThreadResponse(CamelModel):
    """Schema for thread responses."""
    id: str
    user_id: Optional[str]
    title: str
    problem: str
    questions: List[QuestionAnswer]
    summary: Optional[str] = None
    action_plan: Optional[str] = None
    coaching_messages: List[CoachingMessage]
    status: ThreadStatus
    created_at: datetime
    updated_at: datetime


class ThreadDetailResponse(ThreadResponse):
    """Thread record together with its decomposed turns."""
    messages: List[MessageResponse] = []


class ThreadUpdate(CamelModel):
    """Schema for renaming or archiving a thread."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    status: Optional[ThreadStatus] = None


class ConversationSaved(CamelModel):
    """Result of a create-or-update save."""
    thread_id: str
