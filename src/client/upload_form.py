"""
Client-side upload form state.

Collects up to `max_files` PDF/CSV files, submits them together with the
expected-field list to `POST /api/ingest` and keeps the returned results.
"""

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from .field_editor import ExpectedFieldEditor

DEFAULT_MAX_FILES = 10
ACCEPTED_TYPES = ("application/pdf", "text/csv")
INGEST_PATH = "/api/ingest"


@dataclass(frozen=True)
class SelectedFile:
    name: str
    content_type: str
    content: bytes

    @classmethod
    def from_path(cls, path: str | Path, content_type: str | None = None) -> "SelectedFile":
        path = Path(path)
        if content_type is None:
            content_type, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, content_type=content_type or "", content=path.read_bytes())


class UploadForm:
    def __init__(
        self,
        field_editor: ExpectedFieldEditor | None = None,
        max_files: int = DEFAULT_MAX_FILES,
        ingest_path: str = INGEST_PATH,
    ):
        self.field_editor = field_editor or ExpectedFieldEditor()
        self.max_files = max_files
        self.ingest_path = ingest_path

        self.files: list[SelectedFile] = []
        self.error: str | None = None
        self.uploading = False
        self.upload_error: str | None = None
        self.results: list[dict[str, Any]] | None = None

    @property
    def can_submit(self) -> bool:
        return bool(self.files) and not self.uploading

    def add_files(self, selected: list[SelectedFile]) -> list[SelectedFile]:
        """
        Add picked or dropped files.

        Exceeding the cap rejects the whole selection. Files of other types
        are skipped and named in `error`. Returns the files that were added.
        """
        self.error = None
        if len(self.files) + len(selected) > self.max_files:
            self.error = f"You can upload up to {self.max_files} files."
            return []

        valid = [f for f in selected if f.content_type in ACCEPTED_TYPES]
        rejected = [f.name for f in selected if f.content_type not in ACCEPTED_TYPES]
        if rejected:
            self.error = f"Only PDF or CSV files are accepted. Skipped: {', '.join(rejected)}"

        self.files = (self.files + valid)[:self.max_files]
        return valid

    def remove_file(self, index: int) -> None:
        if 0 <= index < len(self.files):
            del self.files[index]

    def clear(self) -> None:
        self.files = []
        self.error = None

    def build_multipart(self) -> tuple[list[tuple[str, tuple[str, bytes, str]]], dict[str, str]]:
        files = [("file", (f.name, f.content, f.content_type)) for f in self.files]
        data = {"expectedFields": self.field_editor.to_json()}
        return files, data

    def submit(self, client: httpx.Client) -> list[dict[str, Any]] | None:
        """
        Post the selected files to the ingest endpoint.

        `client` should carry the API base URL. Failures are stored in
        `upload_error` rather than raised.
        """
        self.upload_error = None
        self.uploading = True
        self.results = None

        files, data = self.build_multipart()
        try:
            response = client.post(self.ingest_path, files=files, data=data)
            body = _json_or_none(response)
            if response.is_error:
                message = body.get("error") if isinstance(body, dict) else None
                self.upload_error = message or "Upload failed"
                logger.warning("Upload rejected", status=response.status_code, error=self.upload_error)
                return None

            self.results = normalize_results(body)
            logger.info("Upload complete", files=len(self.files), results=len(self.results))
            return self.results
        except httpx.HTTPError as e:
            self.upload_error = str(e) or "Upload failed"
            logger.error(f"Upload failed: {self.upload_error}")
            return None
        finally:
            self.uploading = False


def normalize_results(body: Any) -> list[dict[str, Any]]:
    """Always hand the table a list: array, single object or nothing"""
    results = body.get("results") if isinstance(body, dict) else None
    if isinstance(results, list):
        return results
    if results:
        return [results]
    return []


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
