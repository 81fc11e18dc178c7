"""
Raw text extraction for uploaded invoices.

PDFs are read from their text layer with pdfplumber and fall back to OCR
when that yields nothing. CSVs are parsed into header-keyed rows and handed
to the LLM as JSON; unreadable CSVs are passed through as plain text.
"""

import asyncio
import csv
import io
import json
import mimetypes
from dataclasses import dataclass

import pdfplumber
from loguru import logger

from ..core.exceptions import CsvParseError, UnsupportedFileTypeError
from .ocr import OcrEngine

PDF_MIME_TYPE = "application/pdf"
CSV_MIME_TYPE = "text/csv"
SUPPORTED_MIME_TYPES = (PDF_MIME_TYPE, CSV_MIME_TYPE)

METHOD_PDF_TEXT = "pdfplumber"
METHOD_CSV = "csv"
METHOD_CSV_FALLBACK = "csv-fallback"


@dataclass(frozen=True)
class ExtractedText:
    text: str
    method: str


def extract_pdf_text(file_bytes: bytes) -> str:
    """Concatenate the text layer of every page"""
    parts: list[str] = []
    with pdfplumber.open(io.BytesIO(file_bytes)) as pdf:
        for page in pdf.pages:
            t = page.extract_text()
            if t:
                parts.append(t)
    return "\n\n".join(parts).strip()


def parse_csv_rows(file_bytes: bytes) -> list[dict[str, str]]:
    """
    Parse CSV bytes into one dict per row, keyed by the header line.

    Rows with more or fewer cells than the header are rejected.
    """
    try:
        text = file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise CsvParseError("CSV is not valid UTF-8", details={"reason": str(e)}) from e

    reader = csv.DictReader(io.StringIO(text), strict=True)
    rows: list[dict[str, str]] = []
    try:
        for row in reader:
            if None in row or None in row.values():
                raise CsvParseError(
                    f"Invalid record length on line {reader.line_num}",
                    details={"line": reader.line_num},
                )
            rows.append(row)
    except csv.Error as e:
        raise CsvParseError(f"Malformed CSV on line {reader.line_num}: {e}") from e
    return rows


async def extract_text(file_bytes: bytes, file_type: str, ocr: OcrEngine) -> ExtractedText:
    logger.info("Extracting text", file_type=file_type, size_bytes=len(file_bytes))

    if file_type == PDF_MIME_TYPE:
        try:
            text = await asyncio.to_thread(extract_pdf_text, file_bytes)
        except Exception as e:
            logger.error(f"Error extracting text from PDF: {e}")
            text = ""

        if text:
            return ExtractedText(text=text, method=METHOD_PDF_TEXT)

        logger.info("PDF has no extractable text, falling back to OCR", ocr=ocr.method)
        ocr_text = await asyncio.to_thread(ocr.recognize, file_bytes)
        return ExtractedText(text=ocr_text.strip(), method=ocr.method)

    if file_type == CSV_MIME_TYPE:
        try:
            rows = parse_csv_rows(file_bytes)
            return ExtractedText(text=json.dumps(rows, indent=2, ensure_ascii=False), method=METHOD_CSV)
        except CsvParseError as e:
            logger.error(f"Error parsing CSV: {e.message}")
            return ExtractedText(
                text=file_bytes.decode("utf-8", errors="replace"),
                method=METHOD_CSV_FALLBACK,
            )

    raise UnsupportedFileTypeError(file_type)


# Content types browsers and HTTP clients send when they do not know better
GENERIC_MIME_TYPES = frozenset({"", "application/octet-stream", "application/vnd.ms-excel", "text/plain"})


def resolve_file_type(content_type: str | None, file_name: str) -> str:
    """
    Normalize the declared MIME type of an upload.

    Parameters such as `; charset=utf-8` are dropped. Generic or missing
    types are replaced by a guess from the file extension.
    """
    declared = (content_type or "").split(";")[0].strip().lower()
    if declared in GENERIC_MIME_TYPES:
        guessed, _ = mimetypes.guess_type(file_name)
        if guessed in SUPPORTED_MIME_TYPES:
            return guessed
    return declared
