from pydantic import Field
from typing import Optional, List

from schemas.conversations import CamelModel, QuestionAnswer, CoachingMessage


class SaveConversationRequest(CamelModel):
    thread_id: Optional[str] = Field(default=None, description="Existing thread to update; omit to create one")
    problem: Optional[str] = None
    questions: List[QuestionAnswer] = Field(default_factory=list)
    summary: Optional[str] = None
    action_plan: Optional[str] = None
    coaching_messages: List[CoachingMessage] = Field(default_factory=list)
