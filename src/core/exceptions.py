"""Exception hierarchy for invoice ingestion."""

from typing import Any, Optional


class InvoiceIngestError(Exception):
    """Base exception for all invoice ingestion errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class UnsupportedFileTypeError(InvoiceIngestError):
    """Raised when an uploaded file is neither a PDF nor a CSV."""

    def __init__(self, file_type: str) -> None:
        self.file_type = file_type
        super().__init__(
            f"Unsupported file type: {file_type or 'unknown'}",
            details={"file_type": file_type},
        )


class CsvParseError(InvoiceIngestError):
    """Raised when a CSV file cannot be read as header + rows."""


class LLMResponseError(InvoiceIngestError):
    """Raised when the LLM response cannot be turned into a JSON object."""
