from pydantic import Field
from typing import Optional, List

from schemas.conversations import CamelModel, QuestionAnswer, CoachingMessage


# Required fields are checked in the routes so a missing value yields 400, not 422
class GenerateQuestionRequest(CamelModel):
    problem: Optional[str] = None
    questions: List[QuestionAnswer] = Field(default_factory=list)
    is_first: bool = Field(default=False, description="Ask the opening question from the problem alone")


class GenerateSummaryRequest(CamelModel):
    problem: Optional[str] = None
    questions: Optional[List[QuestionAnswer]] = None


class GenerateActionPlanRequest(CamelModel):
    problem: Optional[str] = None
    questions: Optional[List[QuestionAnswer]] = None


class CoachingChatRequest(CamelModel):
    problem: Optional[str] = None
    questions: List[QuestionAnswer] = Field(default_factory=list)
    summary: Optional[str] = None
    coaching_messages: List[CoachingMessage] = Field(default_factory=list)
    user_message: Optional[str] = None
