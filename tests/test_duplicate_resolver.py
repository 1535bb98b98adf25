"""
Tests for duplicate detection against stored invoice records.
"""

from datetime import datetime, UTC

import pytest

from invoice_ingest.models.invoice import StoredInvoiceRecord
from invoice_ingest.services.duplicate_resolver import DuplicateResolver
from invoice_ingest.services.storage import InMemoryInvoiceStore


def _record(record_id, user_id="user-1", invoice_number="", original_filename="a.pdf"):
    return StoredInvoiceRecord(
        id=record_id,
        user_id=user_id,
        filename=original_filename.replace(".", "_"),
        original_filename=original_filename,
        invoice_number=invoice_number,
        created_at=datetime(2025, 1, 1, tzinfo=UTC),
        updated_at=datetime(2025, 1, 1, tzinfo=UTC),
    )


@pytest.fixture
def store():
    return InMemoryInvoiceStore()


@pytest.fixture
def resolver(store):
    return DuplicateResolver(store)


@pytest.mark.asyncio
async def test_exact_invoice_number_match(store, resolver):
    await store.save(_record("r1", invoice_number="INV-100"))

    found = await resolver.find_existing("user-1", "other.pdf", "INV-100")

    assert found is not None
    assert found.id == "r1"


@pytest.mark.asyncio
async def test_invoice_number_match_ignores_case_and_whitespace(store, resolver):
    await store.save(_record("r1", invoice_number="INV-100"))

    found = await resolver.find_existing("user-1", "other.pdf", "  inv-100 ")

    assert found is not None
    assert found.id == "r1"


@pytest.mark.asyncio
async def test_filename_fallback_when_number_missing(store, resolver):
    await store.save(_record("r1", original_filename="march.pdf"))

    assert (await resolver.find_existing("user-1", "march.pdf", "")).id == "r1"
    assert (await resolver.find_existing("user-1", "march.pdf", None)).id == "r1"


@pytest.mark.asyncio
async def test_filename_fallback_when_number_unmatched(store, resolver):
    await store.save(_record("r1", invoice_number="INV-1", original_filename="march.pdf"))

    found = await resolver.find_existing("user-1", "march.pdf", "INV-2")

    assert found.id == "r1"


@pytest.mark.asyncio
async def test_invoice_number_wins_over_filename(store, resolver):
    await store.save(_record("by-name", original_filename="march.pdf"))
    await store.save(_record("by-number", invoice_number="INV-100", original_filename="scan.pdf"))

    found = await resolver.find_existing("user-1", "march.pdf", "INV-100")

    assert found.id == "by-number"


@pytest.mark.asyncio
async def test_matches_are_scoped_to_owner(store, resolver):
    await store.save(_record("r1", user_id="someone-else", invoice_number="INV-100", original_filename="a.pdf"))

    lookup = await resolver.lookup("user-1", "a.pdf", "INV-100")

    assert lookup.record is None
    assert not lookup.degraded


class BrokenStore(InMemoryInvoiceStore):
    async def find_by_invoice_number(self, user_id, invoice_number):
        raise ConnectionError("store offline")


@pytest.mark.asyncio
async def test_lookup_failure_is_treated_as_no_match():
    resolver = DuplicateResolver(BrokenStore())

    lookup = await resolver.lookup("user-1", "a.pdf", "INV-100")

    assert lookup.record is None
    assert lookup.degraded
    assert await resolver.find_existing("user-1", "a.pdf", "INV-100") is None
