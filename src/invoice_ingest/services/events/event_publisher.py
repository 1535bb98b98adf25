"""
Azure Service Bus event publishing for committed invoice records.

Lets downstream systems react to ingestion without polling storage:
- Accounting systems can pick up new invoices
- Analytics systems can refresh vendor totals when a record is updated
"""

import asyncio
import json
from dataclasses import dataclass, asdict
from datetime import datetime, UTC
from typing import Optional


@dataclass
class InvoiceCommittedEvent:
    """
    Event published after an invoice record is created or updated.
    """

    record_id: str
    user_id: str
    action: str  # "created" or "updated"
    invoice_number: str
    vendor_name: str
    total_amount: float
    original_filename: str
    event_type: str = "InvoiceCommitted"
    timestamp: Optional[str] = None

    def __post_init__(self):
        """Set timestamp if not provided"""
        if self.timestamp is None:
            self.timestamp = datetime.now(UTC).isoformat()

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class EventPublisher:
    """
    Publishes events to an Azure Service Bus queue or topic.

    Usage:
        from azure.servicebus import ServiceBusClient
        client = ServiceBusClient.from_connection_string(conn_str)
        sender = client.get_queue_sender(queue_name="invoice-events")
        publisher = EventPublisher(service_bus_sender=sender)

        # Disabled mode (no Service Bus configured)
        publisher = EventPublisher(service_bus_sender=None)
    """

    def __init__(
        self,
        service_bus_sender: Optional[object] = None,
        entity_name: str = "invoice-events",
        service_bus_client: Optional[object] = None,
    ):
        """
        Args:
            service_bus_sender: Azure Service Bus sender (ServiceBusSender) or None to disable
            entity_name: Service Bus queue or topic name (default: invoice-events)
            service_bus_client: Client that owns the sender; closed by ``aclose``
        """
        self.service_bus_sender = service_bus_sender
        self.entity_name = entity_name
        self.service_bus_client = service_bus_client

    @property
    def enabled(self) -> bool:
        return self.service_bus_sender is not None

    async def publish_invoice_committed(self, event: InvoiceCommittedEvent) -> None:
        """
        Publish an invoice committed event.

        The SDK sender is blocking, so the send runs in a worker thread.
        If service_bus_sender is None this is a no-op, which is the normal
        mode for local development and tests.
        """
        if self.service_bus_sender is None:
            return

        from azure.servicebus import ServiceBusMessage

        message = ServiceBusMessage(event.to_json(), content_type="application/json")
        await asyncio.to_thread(self.service_bus_sender.send_messages, message)

    async def aclose(self) -> None:
        """Close the sender and its client, if any."""
        if self.service_bus_sender is not None:
            await asyncio.to_thread(self.service_bus_sender.close)
        if self.service_bus_client is not None:
            await asyncio.to_thread(self.service_bus_client.close)


def build_event_publisher(settings) -> EventPublisher:
    """Create a publisher bound to the configured queue, or a disabled one."""
    if not settings.service_bus_connection_string:
        return EventPublisher(service_bus_sender=None, entity_name=settings.service_bus_entity)

    from azure.servicebus import ServiceBusClient

    client = ServiceBusClient.from_connection_string(settings.service_bus_connection_string)
    sender = client.get_queue_sender(queue_name=settings.service_bus_entity)
    return EventPublisher(
        service_bus_sender=sender,
        entity_name=settings.service_bus_entity,
        service_bus_client=client,
    )
