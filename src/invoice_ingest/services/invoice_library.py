"""
Read side of the invoice store: listing, lookup, delete and per-user stats.

Used to re-sync a caller's view across processes; callers in the same
process get the committed record straight from the CommitOutcome.
"""

from datetime import datetime
from typing import Optional

from loguru import logger
from pydantic import BaseModel

from ..models.invoice import StoredInvoiceRecord
from .storage.invoice_store_base import InvoiceStoreBase

DEFAULT_LIST_LIMIT = 50


class InvoiceStats(BaseModel):
    total_invoices: int = 0
    total_amount: float = 0.0
    last_processed_at: Optional[datetime] = None


class InvoiceLibrary:
    def __init__(self, store: InvoiceStoreBase):
        self.store = store

    async def list_invoices(self, user_id: str, limit: int = DEFAULT_LIST_LIMIT) -> list[StoredInvoiceRecord]:
        return await self.store.list_for_user(user_id, limit=limit)

    async def get_invoice(self, user_id: str, record_id: str) -> Optional[StoredInvoiceRecord]:
        record = await self.store.get(record_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    async def delete_invoice(self, user_id: str, record_id: str) -> bool:
        """Delete one of the user's records; False if it does not exist or is not theirs."""
        if await self.get_invoice(user_id, record_id) is None:
            return False
        deleted = await self.store.delete(record_id)
        if deleted:
            logger.info("Invoice deleted", user_id=user_id, record_id=record_id)
        return deleted

    async def stats(self, user_id: str) -> InvoiceStats:
        records = await self.store.list_for_user(user_id)
        if not records:
            return InvoiceStats()
        return InvoiceStats(
            total_invoices=len(records),
            total_amount=sum(r.total_amount for r in records),
            last_processed_at=max(r.updated_at for r in records),
        )
