from loguru import logger
from pydantic import BaseModel, Field, RootModel, ValidationError, ValidationInfo, field_validator

from .invoice import RESULT_METADATA_KEYS

# Limits shared by the field editor and the ingest endpoint
MAX_LABEL_LENGTH = 32
MAX_DESC_LENGTH = 64


class ExpectedField(BaseModel):
    """A named, described data point the user wants extracted from an invoice"""
    key: str = Field(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_]+$")
    label: str = Field(min_length=1, max_length=MAX_LABEL_LENGTH)
    desc: str = Field(min_length=1, max_length=MAX_DESC_LENGTH)

    @field_validator("key")
    @classmethod
    def key_not_reserved(cls, key: str) -> str:
        if key in RESULT_METADATA_KEYS:
            raise ValueError(f"'{key}' is reserved for result metadata")
        return key


class ExpectedFieldList(RootModel[list[ExpectedField]]):
    """
    Declared schema for the `expectedFields` form part.

    Pass `context={"max_fields": n}` to enforce an upper bound on the list.
    """

    @field_validator("root")
    @classmethod
    def check_bounds_and_unique_keys(cls, fields: list[ExpectedField], info: ValidationInfo):
        if not fields:
            raise ValueError("at least one expected field is required")

        max_fields = (info.context or {}).get("max_fields")
        if max_fields is not None and len(fields) > max_fields:
            raise ValueError(f"at most {max_fields} expected fields are allowed, got {len(fields)}")

        keys = [f.key for f in fields]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ValueError(f"duplicate field keys: {', '.join(duplicates)}")
        return fields


DEFAULT_EXPECTED_FIELDS: tuple[ExpectedField, ...] = (
    ExpectedField(key="vendor", label="Vendor", desc="Name of the invoice issuer/company"),
    ExpectedField(key="invoice_number", label="Invoice #", desc="Unique invoice identifier"),
    ExpectedField(key="invoice_date", label="Invoice Date", desc="Date the invoice was issued"),
    ExpectedField(key="due_date", label="Due Date", desc="Date payment is due"),
    ExpectedField(key="tax", label="Tax", desc="Tax amount on the invoice"),
    ExpectedField(key="fees", label="Fees", desc="Any additional fees"),
    ExpectedField(key="total_amount", label="Total Amount", desc="Total amount due"),
    ExpectedField(key="line_items", label="Line Items", desc="List of billed items/services"),
)


def default_expected_fields() -> list[ExpectedField]:
    return [f.model_copy() for f in DEFAULT_EXPECTED_FIELDS]


def parse_expected_fields(raw: str | None, max_fields: int) -> list[ExpectedField]:
    """
    Validate a JSON-encoded field list, falling back to the defaults.

    A missing part is not an error. Malformed JSON or a list that fails the
    schema is logged and replaced by the default field set.
    """
    if raw is None or not raw.strip():
        return default_expected_fields()

    try:
        parsed = ExpectedFieldList.model_validate_json(raw, context={"max_fields": max_fields})
    except ValidationError as e:
        logger.warning(
            "Invalid expectedFields payload, using default fields",
            errors=e.error_count(),
            detail=str(e.errors(include_url=False)[:3]),
        )
        return default_expected_fields()

    return list(parsed.root)
