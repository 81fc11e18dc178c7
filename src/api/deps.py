"""
Service handles shared by all requests.

The LLM client, OCR engine and object store are built once per application
(in the lifespan handler, or lazily on first use) and kept on `app.state`.
Routes receive them through `Depends`, which also lets tests swap them with
`app.dependency_overrides`.
"""

from dataclasses import dataclass

from fastapi import FastAPI, Request

from ..core.config import Settings, settings
from ..services.invoice_parser import InvoiceParser
from ..services.llm import LLMClient, create_llm_client
from ..services.ocr import create_ocr_engine
from ..services.storage import ObjectStore, create_object_store


@dataclass
class Services:
    llm: LLMClient
    parser: InvoiceParser
    store: ObjectStore

    async def aclose(self) -> None:
        await self.llm.aclose()
        await self.store.aclose()


def build_services(config: Settings) -> Services:
    llm = create_llm_client(config)
    return Services(
        llm=llm,
        parser=InvoiceParser(llm=llm, ocr=create_ocr_engine(config)),
        store=create_object_store(config),
    )


def get_services_for_app(app: FastAPI) -> Services:
    services = getattr(app.state, "services", None)
    if services is None:
        services = build_services(settings)
        app.state.services = services
    return services


def get_invoice_parser(request: Request) -> InvoiceParser:
    return get_services_for_app(request.app).parser


def get_object_store(request: Request) -> ObjectStore:
    return get_services_for_app(request.app).store


def get_settings() -> Settings:
    return settings
