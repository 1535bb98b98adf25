"""
Abstract base class for invoice record storage.

Defines the read/write contract the ingestion pipeline needs from a document
store, enabling dependency injection and easy swapping of storage backends.
Each operation touches a single record; there is no batch or cross-record
transaction API.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ...models.invoice import StoredInvoiceRecord


class InvoiceStoreBase(ABC):
    """
    Abstract base class for invoice storage.

    Implementations can use:
    - In-memory storage (for testing/demo)
    - SQLite (for single-instance deployments)
    - A managed document store (Firestore, Cosmos DB) in production
    """

    @abstractmethod
    async def get(self, record_id: str) -> Optional[StoredInvoiceRecord]:
        """
        Get a record by ID.

        Returns:
            The record, or None if not found
        """

    @abstractmethod
    async def find_by_invoice_number(self, user_id: str, invoice_number: str) -> Optional[StoredInvoiceRecord]:
        """
        Exact match on (user_id, invoice_number).

        Returns:
            The first matching record, or None
        """

    @abstractmethod
    async def find_by_filename(self, user_id: str, original_filename: str) -> Optional[StoredInvoiceRecord]:
        """
        Exact match on (user_id, original_filename).

        Returns:
            The first matching record, or None
        """

    @abstractmethod
    async def list_for_user(self, user_id: str, limit: Optional[int] = None) -> list[StoredInvoiceRecord]:
        """
        List a user's records, most recently updated first.

        Args:
            user_id: Owner of the records
            limit: Maximum number of records to return (None = all)
        """

    @abstractmethod
    async def save(self, record: StoredInvoiceRecord) -> None:
        """
        Create or replace the record stored under ``record.id``.

        Raises:
            PersistenceError: if the write fails
        """

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        """
        Delete a record.

        Returns:
            True if a record was deleted, False if it did not exist
        """
