from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Keys the pipeline and endpoint attach to every result. They take precedence
# over identically named keys returned by the LLM.
RESULT_METADATA_KEYS = frozenset({
    "file_name",
    "file_type",
    "extraction_method",
    "missing_fields",
    "unmatched_fields",
    "storage_path",
    "storage_error",
    "error",
    "details",
})


class ParsedInvoice(BaseModel):
    """
    Result for one uploaded file.

    Extracted values (vendor, total_amount, line_items, custom fields, ...)
    are kept as extra keys exactly as the LLM returned them.
    """
    model_config = ConfigDict(extra="allow")

    file_name: str | None = Field(default=None)
    file_type: str | None = Field(default=None)
    extraction_method: str | None = Field(default=None)
    missing_fields: list[str] = Field(default_factory=list)
    unmatched_fields: list[str] = Field(default_factory=list)
    storage_path: str | None = Field(default=None)
    storage_error: str | None = Field(default=None)
    error: str | None = Field(default=None)
    details: str | None = Field(default=None)

    def extracted(self) -> dict[str, Any]:
        """Values returned by the LLM, without the metadata keys"""
        return dict(self.model_extra or {})


class IngestResponse(BaseModel):
    results: list[ParsedInvoice]


class ErrorResponse(BaseModel):
    error: str
