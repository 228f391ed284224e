"""Email service for preparing shareable session emails."""
from typing import Optional
import logging

from schemas.email import EmailResponse

logger = logging.getLogger(__name__)


class EmailService:
    """
    Service for preparing emails.

    Nothing is dispatched: the formatted message goes back to the client,
    which copies it or opens a compose window with it.
    """

    @staticmethod
    def prepare(subject: str, content: str, recipient: Optional[str] = None) -> EmailResponse:
        """Format a subject and body into a ready-to-paste email."""
        subject = subject.strip()
        email_content = f"Subject: {subject}\n\n{content.strip()}\n"

        logger.info(f"Prepared email '{subject}' ({len(content)} characters)")

        return EmailResponse(
            success=True,
            email_content=email_content,
            recipient=recipient,
            subject=subject,
        )
