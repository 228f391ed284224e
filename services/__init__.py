from .threads import ConversationService, ConversationConflictError
from .auth import AuthService
from .documents import DocumentService, DocumentProcessingError
from .coach import CoachService, GenerationError
from .export import SessionExporter, SessionSnapshot
from .email import EmailService

__all__ = ["ConversationService", "ConversationConflictError", "AuthService",
           "DocumentService", "DocumentProcessingError", "CoachService", "GenerationError",
           "SessionExporter", "SessionSnapshot", "EmailService"]
