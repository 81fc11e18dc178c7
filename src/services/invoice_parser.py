"""
Per-file invoice pipeline.

Extract -> Prompt -> LLM call -> JSON parse -> Diagnostics -> Result.

Extraction and LLM failures never raise out of `InvoiceParser.parse`; they
produce a result carrying `error` / `details` so sibling files in the same
batch are unaffected. Only an unsupported file type is rejected outright.
"""

import time
from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger

from ..core.exceptions import InvoiceIngestError, LLMResponseError, UnsupportedFileTypeError
from ..models.fields import ExpectedField
from ..models.invoice import RESULT_METADATA_KEYS, ParsedInvoice
from .llm import LLMClient, parse_llm_json
from .ocr import OcrEngine
from .prompts import MODEL_MISSING_FIELDS_KEY, build_extraction_prompt
from .text_extraction import extract_text


class PipelineStageError(InvoiceIngestError):
    """A pipeline stage failed; `message` is the short marker put on the result."""


def is_empty_value(value: Any) -> bool:
    """None, an empty string or an empty list/object"""
    if value is None:
        return True
    if isinstance(value, (str, list, dict)):
        return len(value) == 0
    return False


def compute_field_diagnostics(
    extracted: Mapping[str, Any],
    expected_keys: Sequence[str],
) -> tuple[list[str], list[str]]:
    """
    Compare LLM output with the requested keys.

    Returns (missing, unmatched): expected keys that are absent, null or
    empty, and returned keys that were never requested.
    """
    missing = [k for k in expected_keys if is_empty_value(extracted.get(k))]
    expected = set(expected_keys)
    unmatched = [k for k in extracted if k not in expected]
    return missing, unmatched


class InvoiceParser:
    def __init__(self, llm: LLMClient, ocr: OcrEngine):
        self.llm = llm
        self.ocr = ocr

    async def parse(
        self,
        file_bytes: bytes,
        file_name: str,
        file_type: str,
        expected_fields: Sequence[ExpectedField],
    ) -> ParsedInvoice:
        started = time.perf_counter()
        logger.info("Parsing invoice", file_name=file_name, file_type=file_type)

        extraction_method = None
        extracted: dict[str, Any] = {}
        failure: PipelineStageError | None = None
        try:
            try:
                extracted_text = await extract_text(file_bytes, file_type, self.ocr)
            except UnsupportedFileTypeError:
                raise
            except Exception as e:
                logger.error(f"Text extraction failed for {file_name}: {e}")
                raise PipelineStageError("Text extraction failed", details={"reason": str(e)}) from e

            extraction_method = extracted_text.method
            logger.info(
                "Text extracted",
                file_name=file_name,
                extraction_method=extraction_method,
                chars=len(extracted_text.text),
            )
            extracted = await self._map_fields(extracted_text.text, expected_fields, file_name)
        except PipelineStageError as e:
            failure = e

        expected_keys = [f.key for f in expected_fields]
        missing, unmatched = compute_field_diagnostics(extracted, expected_keys)

        logger.info(
            "Field diagnostics",
            file_name=file_name,
            extraction_method=extraction_method,
            missing_fields=missing,
            unmatched_fields=unmatched,
            elapsed_ms=round((time.perf_counter() - started) * 1000),
        )

        return ParsedInvoice.model_validate({
            **extracted,
            "file_name": file_name,
            "file_type": file_type,
            "extraction_method": extraction_method,
            "missing_fields": missing,
            "unmatched_fields": unmatched,
            "error": failure.message if failure else None,
            "details": failure.details.get("reason") if failure else None,
        })

    async def _map_fields(
        self,
        invoice_text: str,
        expected_fields: Sequence[ExpectedField],
        file_name: str,
    ) -> dict[str, Any]:
        prompt = build_extraction_prompt(expected_fields, invoice_text)

        started = time.perf_counter()
        try:
            content = await self.llm.complete(prompt)
        except Exception as e:
            logger.error(f"Error getting LLM response for {file_name}: {e}")
            raise PipelineStageError("LLM request failed", details={"reason": str(e)}) from e
        finally:
            logger.info(
                "LLM call finished",
                file_name=file_name,
                elapsed_ms=round((time.perf_counter() - started) * 1000),
            )

        try:
            data = parse_llm_json(content)
        except LLMResponseError as e:
            logger.error(f"Error parsing LLM response as JSON for {file_name}: {e.message}")
            raise PipelineStageError("LLM response was not valid JSON", details={"reason": e.message}) from e

        self_reported = data.pop(MODEL_MISSING_FIELDS_KEY, None)
        if self_reported is not None:
            logger.debug("Model reported missing fields", file_name=file_name, reported=self_reported)

        # Metadata keys are owned by the pipeline
        return {k: v for k, v in data.items() if k not in RESULT_METADATA_KEYS}
