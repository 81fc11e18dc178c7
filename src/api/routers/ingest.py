import asyncio
import os
import shutil
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import BinaryIO

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from loguru import logger
from starlette.datastructures import UploadFile as StarletteUploadFile

from ..deps import get_invoice_parser, get_object_store, get_settings
from ...core.config import Settings
from ...core.exceptions import UnsupportedFileTypeError
from ...models.fields import ExpectedField, parse_expected_fields
from ...models.invoice import IngestResponse, ParsedInvoice
from ...services.invoice_parser import InvoiceParser
from ...services.storage import ObjectStore, StorageResult
from ...services.text_extraction import resolve_file_type

router = APIRouter(prefix="/api", tags=["ingest"])


def spool_to_disk(source: BinaryIO, tmp_dir: str | None) -> Path:
    """Copy an upload stream into a named temporary file and return its path"""
    if tmp_dir:
        os.makedirs(tmp_dir, exist_ok=True)
    with tempfile.NamedTemporaryFile(prefix="invoice-", dir=tmp_dir, delete=False) as tmp:
        shutil.copyfileobj(source, tmp)
        return Path(tmp.name)


def remove_temp_file(path: Path) -> None:
    try:
        path.unlink()
        logger.debug("Deleted temp file", path=str(path))
    except OSError as e:
        logger.error(f"Failed to delete temp file {path}: {e}")


async def upload_for_audit(store: ObjectStore, file_bytes: bytes, file_name: str, file_type: str) -> StorageResult:
    try:
        return await store.upload(file_bytes, file_name, file_type)
    except Exception as e:
        logger.error(f"Storage upload raised for {file_name}: {e}")
        return StorageResult(path=None, error=str(e) or type(e).__name__)


async def parse_file(
    parser: InvoiceParser,
    file_bytes: bytes,
    file_name: str,
    file_type: str,
    expected_fields: Sequence[ExpectedField],
) -> ParsedInvoice:
    try:
        result = await parser.parse(file_bytes, file_name, file_type, expected_fields)
        logger.info("Successfully parsed invoice", file_name=file_name)
        return result
    except Exception as e:
        if isinstance(e, UnsupportedFileTypeError):
            logger.warning(f"Rejected {file_name}: {e.message}")
        else:
            logger.exception(f"Parsing failed for file {file_name}")
        return ParsedInvoice(
            file_name=file_name,
            file_type=file_type,
            missing_fields=[f.key for f in expected_fields],
            error="Parsing failed",
            details=str(e),
        )


async def process_upload(
    upload: UploadFile,
    expected_fields: Sequence[ExpectedField],
    parser: InvoiceParser,
    store: ObjectStore,
    tmp_dir: str | None,
) -> ParsedInvoice:
    """Store and parse one uploaded file; the temp copy is always removed"""
    file_name = upload.filename or "upload"
    file_type = resolve_file_type(upload.content_type, file_name)

    tmp_path = await asyncio.to_thread(spool_to_disk, upload.file, tmp_dir)
    try:
        file_bytes = await asyncio.to_thread(tmp_path.read_bytes)
        storage, result = await asyncio.gather(
            upload_for_audit(store, file_bytes, file_name, file_type),
            parse_file(parser, file_bytes, file_name, file_type, expected_fields),
        )
    finally:
        await asyncio.to_thread(remove_temp_file, tmp_path)
        await upload.close()

    return result.model_copy(update={"storage_path": storage.path, "storage_error": storage.error})


@router.post("/ingest", response_model=IngestResponse)
async def ingest(
    file: list[UploadFile | str] | None = File(None),
    expected_fields_raw: str | None = Form(None, alias="expectedFields"),
    parser: InvoiceParser = Depends(get_invoice_parser),
    store: ObjectStore = Depends(get_object_store),
    config: Settings = Depends(get_settings),
):
    """
    Upload invoices (PDF or CSV) and extract the requested fields.

    Multipart body:
    - `file`: one or more invoice files; text parts with that name are ignored
    - `expectedFields`: optional JSON list of {key, label, desc}. Keys match
      `[A-Za-z0-9_]+`, labels are at most 32 characters and descriptions at
      most 64. The list is all or nothing: if it is missing, not JSON, or any
      entry breaks these rules (e.g. `po-number`), the whole list is replaced
      by the default field set and a warning is logged.

    Each file is retained in object storage and parsed in parallel. A failure
    on one file is reported on its own result and does not affect the others.
    """
    # plain text parts named `file` are not uploads
    uploads = [f for f in (file or []) if isinstance(f, StarletteUploadFile) and f.filename]
    if not uploads:
        raise HTTPException(status_code=400, detail="No files uploaded")

    try:
        expected_fields = parse_expected_fields(expected_fields_raw, max_fields=config.max_fields)
        logger.info(
            "Ingest request received",
            files=len(uploads),
            expected_fields=[f.key for f in expected_fields],
        )

        results = await asyncio.gather(*[
            process_upload(upload, expected_fields, parser, store, config.upload_tmp_dir)
            for upload in uploads
        ])
        return IngestResponse(results=list(results))
    except Exception as e:
        logger.exception("Ingest request failed")
        raise HTTPException(status_code=500, detail=str(e) or "Internal server error")
