"""Document schemas for upload-and-extract responses."""
from typing import List

from pydantic import Field

from .conversations import CamelModel


class DocumentExtractionResponse(CamelModel):
    """Plain text extracted from an uploaded document."""
    content: str = Field(description="Extracted text, truncated if needed")
    original_length: int = Field(description="Length of the extracted text before truncation")
    truncated: bool


class AllowedFileTypes(CamelModel):
    """Schema for listing allowed file types."""
    extensions: List[str] = [".txt", ".pdf", ".doc", ".docx"]
    max_size_mb: int = 5
    max_size_bytes: int = 5 * 1024 * 1024
    max_content_length: int = 5000
