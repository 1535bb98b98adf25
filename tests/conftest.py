"""
Pytest configuration and shared fixtures.

Registers the integration marker/option and provides fake uploads,
extraction payloads and a respx side effect that mimics the batch endpoint.
"""

import re

import httpx
import pytest

from invoice_ingest.core.config import Settings
from invoice_ingest.models.invoice import UploadedDocument

OCR_BASE_URL = "http://ocr.test/api/v2"


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against a real extraction service"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring a real extraction service"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def invoice_payload(number="INV-100", vendor="Acme Supply Co.", total=385.0, customer="Ammons DataLabs"):
    return {
        "invoice_metadata": {"invoice_number": number, "invoice_date": "2025-09-30", "due_date": "2025-10-15"},
        "vendor_information": {"company_name": vendor, "contact_info": {"phone": "555-0100"}},
        "customer_information": {"company_name": customer},
        "financial_summary": {"subtotal": 350.0, "tax_amount": 35.0, "total_amount": total, "currency": "USD"},
        "commodity_details": {
            "items": [{"description": "Pallet pickup", "quantity": 2, "unit_price": 175.0}],
        },
        "processing_metadata": {"model": "test"},
    }


@pytest.fixture
def payload():
    """Factory for extraction-service invoice payloads"""
    return invoice_payload


@pytest.fixture
def make_pdf():
    """Factory for uploaded PDF documents"""
    def _make(name="invoice.pdf", size=1024, content_type="application/pdf"):
        return UploadedDocument(filename=name, content_type=content_type, content=b"%" * size)
    return _make


@pytest.fixture
def test_settings():
    """Settings pointing at a fake extraction service, with no real delays"""
    return Settings(
        extraction_api_base_url=OCR_BASE_URL,
        batch_size=2,
        max_concurrent_batches=2,
        per_file_timeout_seconds=5.0,
        health_retry_delay_seconds=0.0,
        storage_backend="memory",
    )


def _uploaded_filenames(request: httpx.Request) -> list[str]:
    return re.findall(r'filename="([^"]+)"', request.read().decode("latin-1"))


@pytest.fixture
def batch_responder():
    """
    Build a respx side effect for POST /parse-multiple-invoices.

    Files listed in ``timeout_files`` make the whole request time out; files
    in ``failed_files`` come back as per-file extraction failures.
    """
    def _build(timeout_files=(), failed_files=()):
        def _respond(request: httpx.Request):
            names = _uploaded_filenames(request)
            if any(n in timeout_files for n in names):
                raise httpx.ReadTimeout("timed out", request=request)
            results = []
            for name in names:
                if name in failed_files:
                    results.append({"filename": name, "success": False, "error": "Could not read document"})
                else:
                    results.append({
                        "filename": name,
                        "success": True,
                        "data": invoice_payload(number=f"INV-{name}"),
                        "processing_time_seconds": 1.5,
                    })
            return httpx.Response(200, json={"success": True, "results": results})
        return _respond
    return _build
