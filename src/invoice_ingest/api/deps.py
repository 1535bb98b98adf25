from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request
from pydantic import BaseModel

from ..core.config import Settings
from ..models.invoice import StoredInvoiceRecord
from ..services.availability import AvailabilityGate
from ..services.batch_orchestrator import BatchOrchestrator
from ..services.duplicate_resolver import DuplicateResolver
from ..services.events.event_publisher import EventPublisher, build_event_publisher
from ..services.extraction_client import (
    ExtractionClient,
    NotConfiguredExtractionClient,
    build_extraction_client,
)
from ..services.invoice_library import InvoiceLibrary
from ..services.persistence import PersistenceCoordinator
from ..services.pipeline import IngestionPipeline
from ..services.storage import InvoiceStoreBase, build_invoice_store


class InvoiceListResponse(BaseModel):
    total: int
    invoices: list[StoredInvoiceRecord]


class DeleteResponse(BaseModel):
    success: bool
    message: str


@dataclass
class Services:
    """Everything the routes need, built once per process."""

    settings: Settings
    extraction_client: ExtractionClient | NotConfiguredExtractionClient
    store: InvoiceStoreBase
    publisher: EventPublisher
    pipeline: IngestionPipeline
    library: InvoiceLibrary

    async def aclose(self) -> None:
        await self.extraction_client.aclose()
        await self.publisher.aclose()


def build_services(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
    store: Optional[InvoiceStoreBase] = None,
    publisher: Optional[EventPublisher] = None,
) -> Services:
    client = build_extraction_client(settings, http_client=http_client)
    store = store or build_invoice_store(settings)
    publisher = publisher or build_event_publisher(settings)
    coordinator = PersistenceCoordinator(
        store,
        resolver=DuplicateResolver(store),
        publisher=publisher,
        fail_closed=settings.duplicate_lookup_fail_closed,
    )
    pipeline = IngestionPipeline(
        BatchOrchestrator(client, settings=settings),
        coordinator,
        gate=AvailabilityGate(client),
        settings=settings,
    )
    return Services(
        settings=settings,
        extraction_client=client,
        store=store,
        publisher=publisher,
        pipeline=pipeline,
        library=InvoiceLibrary(store),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
