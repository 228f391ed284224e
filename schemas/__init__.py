from .conversations import (
    CoachingRole, QuestionAnswer, CoachingMessage, MessageResponse,
    ThreadResponse, ThreadDetailResponse, ThreadUpdate, ConversationSaved,
)
from .auth import SessionClaims, UserResponse
from .documents import DocumentExtractionResponse, AllowedFileTypes
from .generation import QuestionResponse, SummaryResponse, ActionPlanResponse, CoachingResponse
from .email import EmailRequest, EmailResponse

__all__ = ["CoachingRole", "QuestionAnswer", "CoachingMessage", "MessageResponse",
           "ThreadResponse", "ThreadDetailResponse", "ThreadUpdate", "ConversationSaved",
           "SessionClaims", "UserResponse",
           "DocumentExtractionResponse", "AllowedFileTypes",
           "QuestionResponse", "SummaryResponse", "ActionPlanResponse", "CoachingResponse",
           "EmailRequest", "EmailResponse"]
