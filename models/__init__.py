from .threads import ConversationThread, ThreadStatus, Base
from .messages import ConversationMessage, MessageType
from .users import User

__all__ = ["ConversationThread", "ThreadStatus", "ConversationMessage", "MessageType", "User", "Base"]
