from .invoice_store_base import InvoiceStoreBase
from .invoices import InMemoryInvoiceStore
from .invoices_sqlite import SQLiteInvoiceStore

__all__ = ["InvoiceStoreBase", "InMemoryInvoiceStore", "SQLiteInvoiceStore", "build_invoice_store"]


def build_invoice_store(settings) -> InvoiceStoreBase:
    """Construct the configured backend ("memory" or "sqlite")."""
    if settings.storage_backend == "sqlite":
        return SQLiteInvoiceStore(settings.sqlite_db_path)
    return InMemoryInvoiceStore()
