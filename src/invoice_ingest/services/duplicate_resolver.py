"""
Decides whether an extracted invoice was already stored for its owner.

Lookup order, first hit wins:
    1. exact (user_id, invoice_number)
    2. case-insensitive, trimmed invoice_number over all of the user's records
    3. exact (user_id, original_filename)

Storage errors are treated as "no match" (fail-open) and reported through
``DuplicateLookup.degraded`` so callers know the answer is best-effort.
The check is read-then-decide: concurrent runs for the same invoice number
can still both create records.
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from ..models.invoice import StoredInvoiceRecord
from .normalizer import normalize_invoice_number
from .storage.invoice_store_base import InvoiceStoreBase


@dataclass(frozen=True)
class DuplicateLookup:
    record: Optional[StoredInvoiceRecord]
    degraded: bool = False


class DuplicateResolver:
    def __init__(self, store: InvoiceStoreBase):
        self.store = store

    async def lookup(
        self, user_id: str, filename: str, invoice_number: Optional[str] = None
    ) -> DuplicateLookup:
        try:
            record = await self._find(user_id, filename, invoice_number)
        except Exception as e:
            logger.warning(
                "Duplicate lookup failed, treating as no match",
                user_id=user_id,
                filename=filename,
                invoice_number=invoice_number,
                error=str(e),
            )
            return DuplicateLookup(record=None, degraded=True)
        return DuplicateLookup(record=record)

    async def find_existing(
        self, user_id: str, filename: str, invoice_number: Optional[str] = None
    ) -> Optional[StoredInvoiceRecord]:
        """Return the matching stored record, or None (best-effort, see module doc)."""
        return (await self.lookup(user_id, filename, invoice_number)).record

    async def _find(
        self, user_id: str, filename: str, invoice_number: Optional[str]
    ) -> Optional[StoredInvoiceRecord]:
        number = (invoice_number or "").strip()
        if number:
            record = await self.store.find_by_invoice_number(user_id, number)
            if record:
                return record

            key = normalize_invoice_number(number)
            for candidate in await self.store.list_for_user(user_id):
                if candidate.invoice_number and normalize_invoice_number(candidate.invoice_number) == key:
                    return candidate

        return await self.store.find_by_filename(user_id, filename)
