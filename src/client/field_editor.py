"""
Editable list of fields to extract, as shown above the upload form.

Every accepted edit keeps the keys unique and the list within `max_fields`;
rejected edits raise `FieldEditorError` and leave the list untouched.
"""

import json
import re

from pydantic import ValidationError

from ..models.fields import (
    DEFAULT_EXPECTED_FIELDS,
    MAX_DESC_LENGTH,
    MAX_LABEL_LENGTH,
    ExpectedField,
    ExpectedFieldList,
    default_expected_fields,
)
from ..models.invoice import RESULT_METADATA_KEYS

DEFAULT_MAX_FIELDS = 15


class FieldEditorError(ValueError):
    """An edit was rejected; the message is meant for the user"""


def slugify(text: str) -> str:
    """'Invoice #' -> 'invoice', 'PO Number (ref)' -> 'po_number_ref'"""
    slug = re.sub(r"[^a-z0-9]+", "_", text.lower())
    slug = slug.strip("_")
    return re.sub(r"_+", "_", slug)


class ExpectedFieldEditor:
    def __init__(self, fields: list[ExpectedField] | None = None, max_fields: int = DEFAULT_MAX_FIELDS):
        self.max_fields = max_fields
        if fields is None:
            self._fields: list[ExpectedField] = default_expected_fields()
            return

        try:
            checked = ExpectedFieldList.model_validate(list(fields), context={"max_fields": max_fields})
        except ValidationError as e:
            raise FieldEditorError(f"Invalid field list: {e.errors()[0]['msg']}") from e
        self._fields = list(checked.root)

    @property
    def fields(self) -> list[ExpectedField]:
        return list(self._fields)

    @property
    def keys(self) -> list[str]:
        return [f.key for f in self._fields]

    @property
    def is_full(self) -> bool:
        return len(self._fields) >= self.max_fields

    @property
    def is_default(self) -> bool:
        return self.keys == [f.key for f in DEFAULT_EXPECTED_FIELDS]

    def unique_key(self, label: str) -> str:
        base = slugify(label) or "field"
        taken = set(self.keys) | RESULT_METADATA_KEYS
        key, suffix = base, 2
        while key in taken:
            key = f"{base}_{suffix}"
            suffix += 1
        return key

    def add_field(self, label: str, desc: str) -> ExpectedField:
        label, desc = label.strip(), desc.strip()
        if not label or not desc:
            raise FieldEditorError("Both a label and a description are required.")
        if len(label) > MAX_LABEL_LENGTH:
            raise FieldEditorError(f"Label must be at most {MAX_LABEL_LENGTH} characters.")
        if len(desc) > MAX_DESC_LENGTH:
            raise FieldEditorError(f"Description must be at most {MAX_DESC_LENGTH} characters.")
        if self.is_full:
            raise FieldEditorError(f"Max {self.max_fields} fields.")

        field = ExpectedField(key=self.unique_key(label), label=label, desc=desc)
        self._fields.append(field)
        return field

    def remove_field(self, index: int) -> ExpectedField:
        if len(self._fields) <= 1:
            raise FieldEditorError("At least one field is required.")
        if not 0 <= index < len(self._fields):
            raise FieldEditorError(f"No field at position {index}.")
        return self._fields.pop(index)

    def reset(self) -> None:
        self._fields = default_expected_fields()

    def to_json(self) -> str:
        """Serialized form of the list, sent as the `expectedFields` form part"""
        return json.dumps([f.model_dump() for f in self._fields])
