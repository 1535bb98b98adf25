"""
SQLite-based invoice storage.

Provides persistent storage of invoice records across restarts. The sqlite3
module is blocking, so each public coroutine runs its query in a worker
thread with its own connection.
"""

import asyncio
import json
import sqlite3
from datetime import datetime
from typing import Optional

from ...core.errors import PersistenceError
from ...models.invoice import StoredInvoiceRecord
from .invoice_store_base import InvoiceStoreBase

_COLUMNS = """
    id, user_id, filename, original_filename, file_url, file_size,
    invoice_number, total_amount, invoice_date, vendor_name,
    processing_metadata, extracted_data, created_at, updated_at
"""


def _row_to_record(row: sqlite3.Row) -> StoredInvoiceRecord:
    return StoredInvoiceRecord(
        id=row["id"],
        user_id=row["user_id"],
        filename=row["filename"],
        original_filename=row["original_filename"],
        file_url=row["file_url"],
        file_size=row["file_size"],
        invoice_number=row["invoice_number"] or "",
        total_amount=row["total_amount"] or 0.0,
        invoice_date=row["invoice_date"] or "",
        vendor_name=row["vendor_name"] or "",
        processing_metadata=json.loads(row["processing_metadata"] or "{}"),
        extracted_data=json.loads(row["extracted_data"] or "{}"),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class SQLiteInvoiceStore(InvoiceStoreBase):
    """
    SQLite-backed invoice store.

    Features:
    - Persistent storage across application restarts
    - Indexes on (user_id, invoice_number) and (user_id, original_filename)
      for the duplicate lookups
    - Per-document atomicity via SQLite's own locking
    """

    def __init__(self, db_path: str = "invoices.db"):
        """
        Initialize store with database path.

        Args:
            db_path: Path to SQLite database file (default: invoices.db)
        """
        self.db_path = db_path
        self._init_database()

    def _init_database(self):
        """Create invoices table if it doesn't exist"""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS invoices (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                filename TEXT NOT NULL,
                original_filename TEXT NOT NULL,
                file_url TEXT,
                file_size INTEGER,
                invoice_number TEXT,
                total_amount REAL,
                invoice_date TEXT,
                vendor_name TEXT,
                processing_metadata TEXT,
                extracted_data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_user_invoice_number
            ON invoices(user_id, invoice_number)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_user_filename
            ON invoices(user_id, original_filename)
        """)

        conn.commit()
        conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _fetch_one(self, where: str, params: tuple) -> Optional[StoredInvoiceRecord]:
        conn = self._get_connection()
        try:
            row = conn.execute(f"SELECT {_COLUMNS} FROM invoices WHERE {where} LIMIT 1", params).fetchone()
        finally:
            conn.close()
        return _row_to_record(row) if row else None

    def _list_for_user(self, user_id: str, limit: Optional[int]) -> list[StoredInvoiceRecord]:
        query = f"SELECT {_COLUMNS} FROM invoices WHERE user_id = ? ORDER BY updated_at DESC"
        params: tuple = (user_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (user_id, limit)

        conn = self._get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [_row_to_record(row) for row in rows]

    def _save(self, record: StoredInvoiceRecord) -> None:
        conn = self._get_connection()
        try:
            conn.execute(f"""
                INSERT OR REPLACE INTO invoices ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.id,
                record.user_id,
                record.filename,
                record.original_filename,
                record.file_url,
                record.file_size,
                record.invoice_number,
                record.total_amount,
                record.invoice_date,
                record.vendor_name,
                json.dumps(record.processing_metadata),
                json.dumps(record.extracted_data),
                record.created_at.isoformat(),
                record.updated_at.isoformat(),
            ))
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save invoice {record.id}: {e}") from e
        finally:
            conn.close()

    def _delete(self, record_id: str) -> bool:
        conn = self._get_connection()
        try:
            cursor = conn.execute("DELETE FROM invoices WHERE id = ?", (record_id,))
            rows_affected = cursor.rowcount
            conn.commit()
        finally:
            conn.close()
        return rows_affected > 0

    async def get(self, record_id: str) -> Optional[StoredInvoiceRecord]:
        return await asyncio.to_thread(self._fetch_one, "id = ?", (record_id,))

    async def find_by_invoice_number(self, user_id: str, invoice_number: str) -> Optional[StoredInvoiceRecord]:
        return await asyncio.to_thread(
            self._fetch_one, "user_id = ? AND invoice_number = ?", (user_id, invoice_number)
        )

    async def find_by_filename(self, user_id: str, original_filename: str) -> Optional[StoredInvoiceRecord]:
        return await asyncio.to_thread(
            self._fetch_one, "user_id = ? AND original_filename = ?", (user_id, original_filename)
        )

    async def list_for_user(self, user_id: str, limit: Optional[int] = None) -> list[StoredInvoiceRecord]:
        return await asyncio.to_thread(self._list_for_user, user_id, limit)

    async def save(self, record: StoredInvoiceRecord) -> None:
        await asyncio.to_thread(self._save, record)

    async def delete(self, record_id: str) -> bool:
        return await asyncio.to_thread(self._delete, record_id)
