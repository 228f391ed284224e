"""Response schemas for the prompt-template endpoints."""
from .conversations import CamelModel


class QuestionResponse(CamelModel):
    question: str


class SummaryResponse(CamelModel):
    summary: str


class ActionPlanResponse(CamelModel):
    action_plan: str


class CoachingResponse(CamelModel):
    response: str
