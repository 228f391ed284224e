"""Email preparation schemas."""
from typing import Optional

from .conversations import CamelModel


class EmailRequest(CamelModel):
    """Subject and body the caller wants to share."""
    subject: Optional[str] = None
    content: Optional[str] = None
    conversation_id: Optional[str] = None


class EmailResponse(CamelModel):
    """Formatted email ready for the client to copy; nothing is sent."""
    success: bool
    email_content: str
    recipient: Optional[str] = None
    subject: str
