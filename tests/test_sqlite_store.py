"""
Tests for SQLite-based invoice persistence.

This test suite verifies that the SQLite invoice store:
- Persists records across instances
- Supports the duplicate lookups by invoice number and filename
- Keeps records scoped to their owner
"""

import os
import sqlite3
import tempfile
from datetime import datetime, timedelta, UTC

import pytest

from invoice_ingest.models.invoice import StoredInvoiceRecord
from invoice_ingest.services.persistence import PersistenceCoordinator
from invoice_ingest.services.invoice_types import ExtractedInvoice
from invoice_ingest.services.storage import SQLiteInvoiceStore


@pytest.fixture
def db_path():
    """Create a temporary database file for testing"""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    # Cleanup
    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def store(db_path):
    """Create a fresh SQLiteInvoiceStore for each test"""
    return SQLiteInvoiceStore(db_path)


def _record(record_id, user_id="user-1", invoice_number="INV-001", original_filename="a.pdf", minutes=0):
    stamp = datetime(2025, 10, 1, 9, 0, tzinfo=UTC) + timedelta(minutes=minutes)
    return StoredInvoiceRecord(
        id=record_id,
        user_id=user_id,
        filename=original_filename.replace(".", "_"),
        original_filename=original_filename,
        invoice_number=invoice_number,
        total_amount=450.0,
        vendor_name="Acme Corp",
        processing_metadata={"model": "test"},
        extracted_data={"invoice_metadata": {"invoice_number": invoice_number}},
        created_at=stamp,
        updated_at=stamp,
    )


@pytest.mark.asyncio
async def test_save_persists_to_db(store, db_path):
    """Test that saving a record writes to SQLite database"""
    await store.save(_record("r1"))

    # Verify it's in the database by querying directly
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()
    cursor.execute("SELECT id, vendor_name, extracted_data FROM invoices WHERE id = ?", ("r1",))
    row = cursor.fetchone()
    conn.close()

    assert row is not None
    assert row[0] == "r1"
    assert row[1] == "Acme Corp"
    assert "INV-001" in row[2]  # JSON contains the payload


@pytest.mark.asyncio
async def test_get_round_trips_fields(store):
    original = _record("r1")
    await store.save(original)

    record = await store.get("r1")

    assert record == original
    assert record.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_get_missing_returns_none(store):
    assert await store.get("nope") is None


@pytest.mark.asyncio
async def test_persistence_across_instances(db_path):
    """Records survive a new store instance on the same file"""
    await SQLiteInvoiceStore(db_path).save(_record("r1"))

    reopened = SQLiteInvoiceStore(db_path)

    assert (await reopened.get("r1")).invoice_number == "INV-001"


@pytest.mark.asyncio
async def test_find_by_invoice_number_and_filename(store):
    await store.save(_record("r1", invoice_number="INV-001", original_filename="march.pdf"))
    await store.save(_record("r2", user_id="user-2", invoice_number="INV-001", original_filename="march.pdf"))

    by_number = await store.find_by_invoice_number("user-1", "INV-001")
    by_name = await store.find_by_filename("user-2", "march.pdf")

    assert by_number.id == "r1"
    assert by_name.id == "r2"
    assert await store.find_by_invoice_number("user-1", "INV-999") is None


@pytest.mark.asyncio
async def test_list_for_user_newest_first_with_limit(store):
    await store.save(_record("old", minutes=0))
    await store.save(_record("new", minutes=10))
    await store.save(_record("other-user", user_id="user-2", minutes=20))

    records = await store.list_for_user("user-1")
    limited = await store.list_for_user("user-1", limit=1)

    assert [r.id for r in records] == ["new", "old"]
    assert [r.id for r in limited] == ["new"]


@pytest.mark.asyncio
async def test_save_replaces_existing_id(store):
    await store.save(_record("r1"))
    await store.save(_record("r1").model_copy(update={"total_amount": 999.0}))

    records = await store.list_for_user("user-1")

    assert len(records) == 1
    assert records[0].total_amount == 999.0


@pytest.mark.asyncio
async def test_delete(store):
    await store.save(_record("r1"))

    assert await store.delete("r1") is True
    assert await store.delete("r1") is False
    assert await store.get("r1") is None


@pytest.mark.asyncio
async def test_coordinator_updates_in_place_on_sqlite(store, payload):
    coordinator = PersistenceCoordinator(store)

    first = await coordinator.commit("user-1", "march.pdf", ExtractedInvoice.model_validate(payload()))
    second = await coordinator.commit("user-1", "march.pdf", ExtractedInvoice.model_validate(payload(total=10.0)))

    records = await store.list_for_user("user-1")
    assert len(records) == 1
    assert records[0].id == first.record.id
    assert records[0].created_at == first.record.created_at
    assert records[0].total_amount == 10.0
    assert second.status.value == "updated"
