"""
OCR engines used as the fallback for PDFs without an extractable text layer.

Both engines expose the same `recognize(file_bytes) -> str` call and are
blocking; callers run them in a worker thread.
"""

from typing import Protocol

from loguru import logger

from ..core.config import Settings


class OcrEngine(Protocol):
    method: str

    def recognize(self, file_bytes: bytes) -> str:
        ...


class TesseractOcr:
    """Rasterize each PDF page with pdf2image and read it with Tesseract"""

    method = "tesseract-ocr"

    def __init__(self, language: str = "eng", dpi: int = 200):
        self.language = language
        self.dpi = dpi

    def recognize(self, file_bytes: bytes) -> str:
        from pdf2image import convert_from_bytes
        import pytesseract

        images = convert_from_bytes(file_bytes, dpi=self.dpi)
        logger.info("Running Tesseract OCR", pages=len(images), language=self.language)

        texts = [pytesseract.image_to_string(img, lang=self.language) for img in images]
        return "\n\n".join(t.strip() for t in texts if t and t.strip())


class AzureDocumentIntelligenceOcr:
    """Read the document text with the Azure Document Intelligence prebuilt-read model"""

    method = "azure-di-ocr"

    def __init__(self, endpoint: str, api_key: str):
        from azure.ai.documentintelligence import DocumentIntelligenceClient
        from azure.core.credentials import AzureKeyCredential

        self.endpoint = endpoint
        self._client = DocumentIntelligenceClient(
            endpoint=endpoint,
            credential=AzureKeyCredential(api_key)
        )

    def recognize(self, file_bytes: bytes) -> str:
        logger.info(
            "Analyzing document with Azure Document Intelligence",
            endpoint=self.endpoint[:50] + "..." if len(self.endpoint) > 50 else self.endpoint,
            size_bytes=len(file_bytes),
        )

        poller = self._client.begin_analyze_document(
            "prebuilt-read",
            body=file_bytes,
            content_type="application/octet-stream"
        )
        result = poller.result()

        if hasattr(result, "content") and result.content:
            return result.content
        return ""


def create_ocr_engine(settings: Settings) -> OcrEngine:
    """Build the OCR engine selected by OCR_BACKEND"""
    if settings.ocr_backend == "azure":
        if settings.az_di_endpoint and settings.az_di_api_key:
            return AzureDocumentIntelligenceOcr(settings.az_di_endpoint, settings.az_di_api_key)
        logger.warning(
            "OCR_BACKEND=azure but AZ_DI_ENDPOINT / AZ_DI_API_KEY are not set - using Tesseract"
        )
    elif settings.ocr_backend != "tesseract":
        logger.warning(f"Unknown OCR_BACKEND '{settings.ocr_backend}' - using Tesseract")

    return TesseractOcr(language=settings.ocr_language)
