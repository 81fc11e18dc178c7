"""
Pytest configuration and shared fakes.

Registers the `integration` marker (skipped unless --run-integration) and
provides in-memory stand-ins for the LLM, OCR engine and object store.
"""

import json

import pytest

from src.services.storage import StorageResult


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against a real LLM endpoint"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring a real LLM endpoint"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


class FakeLLM:
    """Returns a canned reply (or raises) and records every prompt"""

    def __init__(self, reply="{}", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def complete(self, prompt, system=None):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if callable(self.reply):
            return self.reply(prompt)
        return self.reply

    async def aclose(self):
        pass


class FakeOcr:
    method = "tesseract-ocr"

    def __init__(self, text="OCR TEXT", error=None):
        self.text = text
        self.error = error
        self.calls = 0

    def recognize(self, file_bytes):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


class FakeStore:
    """Object store that fails for the file names listed in `fail_for`"""

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.uploaded = []

    async def upload(self, file_bytes, file_name, content_type=None):
        if file_name in self.fail_for:
            return StorageResult(path=None, error="Bucket not found")
        self.uploaded.append((file_name, content_type, file_bytes))
        return StorageResult(path=f"uploads/1700000000000-{file_name}")

    async def aclose(self):
        pass


@pytest.fixture
def fake_llm():
    return FakeLLM(reply=json.dumps({
        "vendor": "Acme Co",
        "invoice_number": None,
        "invoice_date": None,
        "due_date": None,
        "tax": None,
        "fees": None,
        "total_amount": 450.00,
        "line_items": [],
        "_missing_fields": ["invoice_number", "invoice_date", "due_date", "tax", "fees", "line_items"],
    }))


@pytest.fixture
def fake_ocr():
    return FakeOcr()


@pytest.fixture
def fake_store():
    return FakeStore()
