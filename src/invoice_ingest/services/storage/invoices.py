"""
In-memory invoice storage (for tests and demo runs).
In production, use SQLite or a managed document store.
"""
from typing import Dict, Optional

from ...models.invoice import StoredInvoiceRecord
from .invoice_store_base import InvoiceStoreBase


class InMemoryInvoiceStore(InvoiceStoreBase):
    def __init__(self):
        self._records: Dict[str, StoredInvoiceRecord] = {}

    async def get(self, record_id: str) -> Optional[StoredInvoiceRecord]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def find_by_invoice_number(self, user_id: str, invoice_number: str) -> Optional[StoredInvoiceRecord]:
        for record in self._records.values():
            if record.user_id == user_id and record.invoice_number == invoice_number:
                return record.model_copy(deep=True)
        return None

    async def find_by_filename(self, user_id: str, original_filename: str) -> Optional[StoredInvoiceRecord]:
        for record in self._records.values():
            if record.user_id == user_id and record.original_filename == original_filename:
                return record.model_copy(deep=True)
        return None

    async def list_for_user(self, user_id: str, limit: Optional[int] = None) -> list[StoredInvoiceRecord]:
        records = [r for r in self._records.values() if r.user_id == user_id]
        records.sort(key=lambda r: r.updated_at, reverse=True)
        if limit is not None:
            records = records[:limit]
        return [r.model_copy(deep=True) for r in records]

    async def save(self, record: StoredInvoiceRecord) -> None:
        self._records[record.id] = record.model_copy(deep=True)

    async def delete(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    def clear(self) -> None:
        """Drop every record (for tests)"""
        self._records.clear()
