"""Prompt text for the LLM field-mapping step."""

from collections.abc import Sequence

from ..models.fields import ExpectedField

SYSTEM_PROMPT = "You are a helpful data parsing assistant."

# Key the model uses to self-report fields it could not find. It is stripped
# from the result; missing fields are recomputed after the call.
MODEL_MISSING_FIELDS_KEY = "_missing_fields"

EXTRACTION_PROMPT_TEMPLATE = """You are an invoice parsing assistant. Extract the following fields from the provided invoice text. Try to semantically match the requested fields to the fields found in the invoice (using the labels and descriptions as context), even if the names or formats differ. Return a JSON object with this structure:

{{
{field_list},
  "{missing_key}": [array of field keys that were requested but could not be found or matched]
}}

If a field is not present in the invoice, set its value to null (or an empty array for array fields), and include its key in the {missing_key} array. Use plain numbers (no currency symbols) for amounts. Only return valid JSON.

Invoice text:
{invoice_text}"""


def format_field_list(fields: Sequence[ExpectedField]) -> str:
    return "\n".join(f'  "{f.key}": // {f.label} - {f.desc}' for f in fields)


def build_extraction_prompt(fields: Sequence[ExpectedField], invoice_text: str) -> str:
    return EXTRACTION_PROMPT_TEMPLATE.format(
        field_list=format_field_list(fields),
        missing_key=MODEL_MISSING_FIELDS_KEY,
        invoice_text=invoice_text,
    )
