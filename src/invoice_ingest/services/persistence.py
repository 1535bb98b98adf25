"""
Create-or-update of extracted invoices.

Every committed record carries the normalized vendor name, so records from
differently-punctuated OCR runs group and match. Each record is written on
its own; a failed write never rolls back records committed earlier in the
same run.
"""

import uuid
from datetime import datetime, UTC
from typing import Callable, Optional

from loguru import logger

from ..models.invoice import (
    CommitOutcome,
    CommitStatus,
    DuplicateCheck,
    FileReference,
    StoredInvoiceRecord,
    safe_filename,
)
from .duplicate_resolver import DuplicateResolver
from .events.event_publisher import EventPublisher, InvoiceCommittedEvent
from .invoice_types import ExtractedInvoice
from .normalizer import normalize
from .storage.invoice_store_base import InvoiceStoreBase


def generate_record_id(user_id: str, filename: str, now: datetime) -> str:
    epoch_ms = int(now.timestamp() * 1000)
    return f"{user_id}_{safe_filename(filename)}_{epoch_ms}_{uuid.uuid4().hex[:8]}"


def normalize_parties(extracted: ExtractedInvoice) -> ExtractedInvoice:
    """Copy of ``extracted`` with vendor and customer names normalized."""
    normalized = extracted.model_copy(deep=True)
    normalized.vendor_information.company_name = normalize(extracted.vendor_information.company_name)
    normalized.customer_information.company_name = normalize(extracted.customer_information.company_name)
    return normalized


class PersistenceCoordinator:
    def __init__(
        self,
        store: InvoiceStoreBase,
        resolver: Optional[DuplicateResolver] = None,
        publisher: Optional[EventPublisher] = None,
        fail_closed: bool = False,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.store = store
        self.resolver = resolver or DuplicateResolver(store)
        self.publisher = publisher or EventPublisher(service_bus_sender=None)
        self.fail_closed = fail_closed
        self._clock = clock

    async def commit(
        self,
        user_id: str,
        filename: str,
        extracted: ExtractedInvoice,
        file_ref: Optional[FileReference] = None,
    ) -> CommitOutcome:
        """
        Store ``extracted`` for ``user_id``, updating a matching record if the
        duplicate resolver finds one.

        Returns:
            CommitOutcome with status created, updated or failed. Its
            ``duplicate_check`` is "best_effort" when the lookup itself failed.
        """
        invoice = normalize_parties(extracted)
        lookup = await self.resolver.lookup(user_id, filename, invoice.invoice_number or None)

        if lookup.degraded and self.fail_closed:
            return CommitOutcome(
                status=CommitStatus.FAILED,
                filename=filename,
                message=f'Duplicate check unavailable for "{filename}", not saved',
                duplicate_check=DuplicateCheck.BEST_EFFORT,
            )

        existing = lookup.record
        record = self._build_record(user_id, filename, invoice, file_ref, existing)

        try:
            await self.store.save(record)
        except Exception as e:
            logger.error("Failed to save invoice", user_id=user_id, filename=filename, error=str(e))
            return CommitOutcome(
                status=CommitStatus.FAILED,
                filename=filename,
                message=f"Failed to save invoice data: {e}",
                duplicate_check=self._check(lookup.degraded, existing),
            )

        status = CommitStatus.UPDATED if existing else CommitStatus.CREATED
        await self._publish(record, status)
        logger.info(
            "Invoice committed",
            status=status.value,
            record_id=record.id,
            invoice_number=record.invoice_number,
            vendor=record.vendor_name,
        )
        return CommitOutcome(
            status=status,
            filename=filename,
            message=(
                f'Invoice "{filename}" updated successfully in database'
                if existing
                else f'Invoice "{filename}" saved successfully to database'
            ),
            record=record,
            duplicate_check=self._check(lookup.degraded, existing),
        )

    def _build_record(
        self,
        user_id: str,
        filename: str,
        invoice: ExtractedInvoice,
        file_ref: Optional[FileReference],
        existing: Optional[StoredInvoiceRecord],
    ) -> StoredInvoiceRecord:
        now = self._clock()
        file_ref = file_ref or FileReference()
        fields = dict(
            user_id=user_id,
            filename=safe_filename(filename),
            original_filename=filename,
            invoice_number=invoice.invoice_number,
            total_amount=invoice.total_amount,
            invoice_date=invoice.invoice_metadata.invoice_date,
            vendor_name=invoice.vendor_information.company_name,
            processing_metadata=invoice.processing_metadata,
            extracted_data=invoice.model_dump(mode="json"),
            updated_at=now,
        )

        if existing:
            # keep id, created_at and the stored file unless a new one was given
            fields["file_url"] = file_ref.url or existing.file_url
            fields["file_size"] = file_ref.size if file_ref.size is not None else existing.file_size
            return existing.model_copy(update=fields)

        return StoredInvoiceRecord(
            id=generate_record_id(user_id, filename, now),
            file_url=file_ref.url,
            file_size=file_ref.size,
            created_at=now,
            **fields,
        )

    @staticmethod
    def _check(degraded: bool, existing: Optional[StoredInvoiceRecord]) -> DuplicateCheck:
        if degraded:
            return DuplicateCheck.BEST_EFFORT
        return DuplicateCheck.MATCHED if existing else DuplicateCheck.NO_MATCH

    async def _publish(self, record: StoredInvoiceRecord, status: CommitStatus) -> None:
        try:
            await self.publisher.publish_invoice_committed(InvoiceCommittedEvent(
                record_id=record.id,
                user_id=record.user_id,
                action=status.value,
                invoice_number=record.invoice_number,
                vendor_name=record.vendor_name,
                total_amount=record.total_amount,
                original_filename=record.original_filename,
            ))
        except Exception as e:
            # Don't fail the commit if event publishing fails
            logger.warning(f"Failed to publish event: {e}")
