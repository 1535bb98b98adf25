"""
HTTP client for the external OCR/extraction service.

One client is built at process start (see ``build_extraction_client``) and
shared by every component. When no service URL is configured the factory
returns ``NotConfiguredExtractionClient`` instead, so callers check
``client.configured`` once rather than null-checking on every call.

Wire contract:
    GET  {base}/health                   any 2xx = ready
    POST {base}/parse-invoice            multipart field "file"
    POST {base}/parse-multiple-invoices  multipart field "files" (repeated)
"""

import time
from typing import Any, Optional, Sequence

import httpx
from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..core.config import Settings
from ..core.errors import ConfigurationError, ExtractionError, ExtractionTimeoutError, UnavailableError
from ..models.invoice import FileOutcome, UploadedDocument
from .invoice_types import ExtractedInvoice

HEALTH_PATH = "/health"
PARSE_INVOICE_PATH = "/parse-invoice"
PARSE_MULTIPLE_PATH = "/parse-multiple-invoices"

_STATUS_HINTS = {
    408: "Request timeout. Try uploading a smaller file or try again later.",
    502: "Extraction service temporarily unavailable. Please try again later.",
    503: "Extraction service is likely cold-starting. Please retry shortly.",
    504: "Extraction service took too long to process the file. Try a smaller file or retry.",
}


def retry_hint(status_code: int) -> Optional[str]:
    """Human-readable retry advice for statuses that are worth retrying."""
    return _STATUS_HINTS.get(status_code)


class _FileResult(BaseModel):
    filename: Optional[str] = None
    success: bool = False
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    error_details: Optional[str] = None
    processing_time_seconds: Optional[float] = None


class _MultipleResponse(BaseModel):
    success: bool = False
    results: Optional[list[_FileResult]] = None


class _SingleResponse(BaseModel):
    success: bool = False
    data: Optional[dict[str, Any]] = None
    message: Optional[str] = None
    request_id: Optional[str] = None


def _failure(filename: str, error: str, retryable: bool = False) -> FileOutcome:
    return FileOutcome(filename=filename, success=False, error=error, retryable=retryable)


def _extraction_failure(filename: str, error: ExtractionError, elapsed_ms: float = 0.0) -> FileOutcome:
    logger.debug("Extraction failed for file", filename=filename, error=error.message, **error.details)
    return FileOutcome(filename=filename, success=False, error=error.message, processing_time_ms=elapsed_ms)


def _http_error_outcomes(response: httpx.Response, documents: Sequence[UploadedDocument]) -> list[FileOutcome]:
    hint = retry_hint(response.status_code)
    error = f"HTTP {response.status_code}: {response.text}"
    if hint:
        error = f"{error} ({hint})"
    return [_failure(d.filename, error, retryable=hint is not None) for d in documents]


def _to_outcome(result: _FileResult, filename: str) -> FileOutcome:
    """Outcome for ``filename``; the submitted name wins over whatever the service echoed."""
    elapsed_ms = (result.processing_time_seconds or 0.0) * 1000
    if not result.success:
        error = ExtractionError(
            result.error_details or result.error or "Extraction failed",
            details={"reported_filename": result.filename},
        )
        return _extraction_failure(filename, error, elapsed_ms)
    if result.data is None:
        return _extraction_failure(filename, ExtractionError("Extraction service returned no data"))
    try:
        data = ExtractedInvoice.model_validate(result.data)
    except PydanticValidationError as e:
        return _extraction_failure(
            filename, ExtractionError(f"Unexpected extraction payload: {e.error_count()} invalid field(s)")
        )
    return FileOutcome(filename=filename, success=True, data=data, processing_time_ms=elapsed_ms)


def match_results(
    results: Sequence[_FileResult], documents: Sequence[UploadedDocument]
) -> list[Optional[_FileResult]]:
    """
    Pair service results with submitted documents, one slot per document.

    A result is matched by filename first (each result used once, so repeated
    names pair up in order). Unnamed results then fill the remaining slots in
    submission order. Results matching nothing are dropped; slots left empty
    are None.
    """
    unused = list(results)
    matched: list[Optional[_FileResult]] = []
    for d in documents:
        hit = next((r for r in unused if r.filename == d.filename), None)
        if hit is not None:
            unused.remove(hit)
        matched.append(hit)

    unnamed = [r for r in unused if not r.filename]
    for i, hit in enumerate(matched):
        if hit is None and unnamed:
            matched[i] = unnamed.pop(0)
            unused.remove(matched[i])

    if unused:
        logger.warning(
            "Dropping extraction results that match no submitted file",
            dropped=[r.filename for r in unused],
        )
    return matched


class ExtractionClient:
    configured = True

    def __init__(self, base_url: str, http_client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def probe_health(self, timeout: float) -> int:
        """GET the health endpoint; raise UnavailableError unless it answers 2xx."""
        try:
            response = await self._http.get(self._url(HEALTH_PATH), timeout=timeout)
        except httpx.TimeoutException as e:
            raise ExtractionTimeoutError(f"Health check timed out after {timeout:g}s") from e
        except httpx.HTTPError as e:
            raise UnavailableError(f"Health check failed: {e}") from e

        if not response.is_success:
            raise UnavailableError(
                f"Health check failed with status: {response.status_code}",
                details={"status_code": response.status_code},
            )
        return response.status_code

    async def parse_multiple(self, documents: Sequence[UploadedDocument], timeout: float) -> list[FileOutcome]:
        """
        Submit one batch. Status and shape problems come back as failure
        outcomes; transport errors and timeouts are raised for the caller to
        spread across the batch.
        """
        files = [("files", (d.filename, d.content, d.content_type)) for d in documents]
        try:
            response = await self._http.post(self._url(PARSE_MULTIPLE_PATH), files=files, timeout=timeout)
        except httpx.TimeoutException as e:
            raise ExtractionTimeoutError(f"Request timeout after {timeout:g}s") from e
        except httpx.HTTPError as e:
            raise UnavailableError(f"Network error: {e}") from e

        if not response.is_success:
            logger.warning(
                "Extraction service rejected batch",
                status_code=response.status_code,
                files=len(documents),
            )
            return _http_error_outcomes(response, documents)

        try:
            body = _MultipleResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError):
            body = _MultipleResponse()

        if not body.success or body.results is None:
            return [_failure(d.filename, "Unexpected response format from extraction service") for d in documents]

        outcomes = []
        for d, result in zip(documents, match_results(body.results, documents)):
            if result is None:
                outcomes.append(_failure(d.filename, "No result returned for file"))
            else:
                outcomes.append(_to_outcome(result, d.filename))
        return outcomes

    async def parse_invoice(self, document: UploadedDocument, timeout: float) -> FileOutcome:
        """Submit a single document to the one-file endpoint."""
        started = time.perf_counter()
        files = {"file": (document.filename, document.content, document.content_type)}
        try:
            response = await self._http.post(self._url(PARSE_INVOICE_PATH), files=files, timeout=timeout)
        except httpx.TimeoutException as e:
            raise ExtractionTimeoutError(f"Request timeout after {timeout:g}s") from e
        except httpx.HTTPError as e:
            raise UnavailableError(f"Network error: {e}") from e
        elapsed_ms = (time.perf_counter() - started) * 1000

        if not response.is_success:
            return _http_error_outcomes(response, [document])[0]

        try:
            body = _SingleResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError):
            return _failure(document.filename, "Unexpected response format from extraction service")

        if not body.success:
            error = ExtractionError(body.message or "Extraction failed", details={"request_id": body.request_id})
            return _extraction_failure(document.filename, error, elapsed_ms)
        outcome = _to_outcome(_FileResult(success=True, data=body.data), document.filename)
        logger.info("Invoice extracted", filename=document.filename, request_id=body.request_id)
        return outcome.model_copy(update={"processing_time_ms": elapsed_ms})

    async def aclose(self) -> None:
        await self._http.aclose()


class NotConfiguredExtractionClient:
    """Stand-in used when EXTRACTION_API_BASE_URL is unset; every call fails."""

    configured = False
    base_url = None

    def _fail(self):
        raise ConfigurationError(
            "Extraction service URL not configured",
            details={"setting": "EXTRACTION_API_BASE_URL"},
        )

    async def probe_health(self, timeout: float) -> int:
        self._fail()

    async def parse_multiple(self, documents, timeout: float) -> list[FileOutcome]:
        self._fail()

    async def parse_invoice(self, document, timeout: float) -> FileOutcome:
        self._fail()

    async def aclose(self) -> None:
        return None


def build_extraction_client(
    settings: Settings, http_client: Optional[httpx.AsyncClient] = None
) -> ExtractionClient | NotConfiguredExtractionClient:
    if not settings.extraction_api_base_url:
        logger.warning("EXTRACTION_API_BASE_URL not set - invoice processing is disabled")
        return NotConfiguredExtractionClient()
    return ExtractionClient(settings.extraction_api_base_url, http_client=http_client)
