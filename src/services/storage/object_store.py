"""
Audit retention of uploaded invoices in object storage.

Talks to the Supabase Storage REST API with a shared httpx.AsyncClient.
Uploads are best-effort: failures are returned as `StorageResult.error`
and never raised to the caller.
"""

import time
from dataclasses import dataclass
from urllib.parse import quote

import httpx
from loguru import logger

from ...core.config import Settings

NOT_CONFIGURED_ERROR = "Object storage is not configured"


@dataclass(frozen=True)
class StorageResult:
    path: str | None
    error: str | None = None


def build_storage_path(file_name: str, prefix: str = "uploads/", now_ms: int | None = None) -> str:
    """Timestamp-prefixed object key, e.g. uploads/1760659200000-invoice.pdf"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{prefix}{now_ms}-{file_name}"


class ObjectStore:
    def __init__(
        self,
        base_url: str | None,
        api_key: str | None,
        bucket: str,
        prefix: str = "uploads/",
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.bucket = bucket
        self.prefix = prefix
        self._client = client or httpx.AsyncClient()

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def object_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(path)}"

    async def upload(self, file_bytes: bytes, file_name: str, content_type: str | None = None) -> StorageResult:
        if not self.configured:
            logger.warning("Skipping storage upload, STORAGE_URL / STORAGE_API_KEY not set", file_name=file_name)
            return StorageResult(path=None, error=NOT_CONFIGURED_ERROR)

        path = build_storage_path(file_name, self.prefix)
        logger.info("Uploading file to object storage", file_name=file_name, storage_path=path)

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "apikey": self.api_key,
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "false",
        }
        try:
            r = await self._client.post(self.object_url(path), content=file_bytes, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Storage upload exception for {file_name}: {e}")
            return StorageResult(path=None, error=str(e) or type(e).__name__)

        if r.status_code >= 400:
            message = _error_message(r)
            logger.error(f"Storage upload failed for {file_name}: {message}")
            return StorageResult(path=None, error=message)

        logger.info("Storage upload successful", file_name=file_name, storage_path=path)
        return StorageResult(path=path)

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    return f"HTTP {response.status_code}"


def create_object_store(settings: Settings) -> ObjectStore:
    return ObjectStore(
        base_url=settings.storage_url,
        api_key=settings.storage_api_key,
        bucket=settings.storage_bucket,
        prefix=settings.storage_prefix,
    )
