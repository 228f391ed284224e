"""Document service for turning uploaded files into problem text."""
from typing import Optional
from dataclasses import dataclass
import os
import logging

import pypdf
from docx import Document as DocxDocument

logger = logging.getLogger(__name__)


# Allowed MIME types and the extension each one maps to
ALLOWED_CONTENT_TYPES = {
    'text/plain': 'txt',
    'application/pdf': 'pdf',
    'application/msword': 'doc',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document': 'docx',
}

EXTENSION_CONTENT_TYPES = {
    '.txt': 'text/plain',
    '.pdf': 'application/pdf',
    '.doc': 'application/msword',
    '.docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
}

GENERIC_CONTENT_TYPES = {None, '', 'application/octet-stream'}

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB
MAX_CONTENT_LENGTH = 5000
TRUNCATION_MARKER = f"\n\n[Content truncated - document exceeded {MAX_CONTENT_LENGTH} characters]"


class DocumentProcessingError(Exception):
    """Raised when an upload cannot be turned into text."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class ExtractedDocument:
    content: str
    original_length: int
    truncated: bool


class DocumentService:
    """Service class for document text extraction."""

    @staticmethod
    def resolve_file_type(filename: Optional[str], content_type: Optional[str]) -> str:
        """
        Work out which extractor to use for an upload.

        The declared content type wins; a missing or generic one falls back
        to the file extension.

        Raises:
            DocumentProcessingError: if the type is not supported.
        """
        declared = (content_type or '').split(';')[0].strip().lower()
        if declared in GENERIC_CONTENT_TYPES:
            extension = os.path.splitext(filename or '')[1].lower()
            declared = EXTENSION_CONTENT_TYPES.get(extension, declared)

        file_type = ALLOWED_CONTENT_TYPES.get(declared)
        if not file_type:
            raise DocumentProcessingError(
                f"Unsupported file type: {declared or 'unknown'}. "
                f"Please upload a text, PDF, or Word document."
            )
        return file_type

    @staticmethod
    def validate_size(file_size: int) -> None:
        if file_size > MAX_FILE_SIZE:
            raise DocumentProcessingError(
                f"File size exceeds maximum allowed size of {MAX_FILE_SIZE // 1024 // 1024}MB"
            )

    @staticmethod
    def extract_text_from_pdf(path: str) -> str:
        """Extract text from PDF file."""
        reader = pypdf.PdfReader(path)
        pages = [page.extract_text() or '' for page in reader.pages]
        return "\n\n".join(text for text in pages if text.strip())

    @staticmethod
    def extract_text_from_docx(path: str) -> str:
        """Extract text from a Word file."""
        doc = DocxDocument(path)
        return "\n\n".join(p.text for p in doc.paragraphs if p.text.strip())

    @staticmethod
    def extract_text_from_txt(path: str) -> str:
        with open(path, 'rb') as f:
            return f.read().decode('utf-8', errors='replace')

    @staticmethod
    def extract_text(file_type: str, path: str) -> str:
        """Extract text based on file type."""
        extractors = {
            'pdf': DocumentService.extract_text_from_pdf,
            'txt': DocumentService.extract_text_from_txt,
            # python-docx only reads the OOXML format; legacy .doc files that
            # are not OOXML underneath fail here and are reported as errors
            'doc': DocumentService.extract_text_from_docx,
            'docx': DocumentService.extract_text_from_docx,
        }

        extractor = extractors.get(file_type)
        if not extractor:
            raise DocumentProcessingError(f"Unsupported file type: {file_type}")

        try:
            return extractor(path)
        except Exception as e:
            logger.error(f"Error extracting text from {file_type.upper()}: {e}")
            raise DocumentProcessingError(
                f"Could not read the {file_type.upper()} document", status_code=500
            ) from e

    @staticmethod
    def truncate(text: str) -> ExtractedDocument:
        original_length = len(text)
        if original_length > MAX_CONTENT_LENGTH:
            return ExtractedDocument(
                content=text[:MAX_CONTENT_LENGTH] + TRUNCATION_MARKER,
                original_length=original_length,
                truncated=True,
            )
        return ExtractedDocument(content=text, original_length=original_length, truncated=False)

    @staticmethod
    def process_upload(path: str, filename: Optional[str], content_type: Optional[str]) -> ExtractedDocument:
        """
        Validate an uploaded file on disk and extract its text.

        Args:
            path: Location of the spooled upload
            filename: Original filename, used when the content type is generic
            content_type: Declared MIME type

        Returns:
            The extracted text, truncated to MAX_CONTENT_LENGTH characters

        Raises:
            DocumentProcessingError: on unsupported type, oversize, unreadable
                file or empty extraction result
        """
        file_type = DocumentService.resolve_file_type(filename, content_type)
        DocumentService.validate_size(os.path.getsize(path))

        text = DocumentService.extract_text(file_type, path).strip()
        if not text:
            raise DocumentProcessingError("No text could be extracted from the document")

        result = DocumentService.truncate(text)
        logger.info(
            f"Extracted {result.original_length} characters from {filename or 'upload'}"
            f"{' (truncated)' if result.truncated else ''}"
        )
        return result
