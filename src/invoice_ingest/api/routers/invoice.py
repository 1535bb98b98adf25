from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from loguru import logger

from ..deps import DeleteResponse, InvoiceListResponse, Services, get_services
from ...models.invoice import IngestionReport, RunStatus, StoredInvoiceRecord, UploadedDocument
from ...services.invoice_library import DEFAULT_LIST_LIMIT, InvoiceStats

router = APIRouter(prefix="/invoices", tags=["invoices"])

_PRECONDITION_STATUS = {
    "validation": 400,
    "configuration": 500,
    "unavailable": 503,
}


async def _read_upload(upload: UploadFile) -> UploadedDocument:
    content = await upload.read()
    return UploadedDocument(
        filename=upload.filename or "upload.pdf",
        content_type=upload.content_type or "application/octet-stream",
        content=content,
    )


def _report_response(report: IngestionReport) -> JSONResponse:
    """
    Map a report to an HTTP response.

    Precondition failures (nothing attempted) get an error status so the
    client keeps the user's selection for resubmission; completed runs are
    200 even when some files failed.
    """
    status_code = 200
    headers = {}
    if report.status == RunStatus.NOT_ATTEMPTED:
        status_code = _PRECONDITION_STATUS.get(report.error_type or "", 500)
        if report.retry_after_seconds:
            headers["Retry-After"] = str(report.retry_after_seconds)

    content = report.model_dump(mode="json")
    content["success"] = report.status != RunStatus.NOT_ATTEMPTED
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@router.post("/process")
async def process_invoice(
    file: UploadFile = File(...),
    x_user_id: str = Header(...),
    services: Services = Depends(get_services),
):
    """
    Extract and store a single invoice PDF.

    The extraction service is probed with the long health budget first
    (several attempts, generous timeout) to ride out a cold start.
    """
    document = await _read_upload(file)
    logger.info("Single invoice upload received", user_id=x_user_id, filename=document.filename, size=document.size)
    report = await services.pipeline.ingest_one(x_user_id, document)
    return _report_response(report)


@router.post("/process-batch")
async def process_invoices_batch(
    files: list[UploadFile] = File(...),
    x_user_id: str = Header(...),
    batch_size: int | None = Query(default=None, ge=1, le=10),
    concurrency: int | None = Query(default=None, ge=1, le=10),
    services: Services = Depends(get_services),
):
    """
    Extract and store many invoice PDFs in bounded concurrent batches.

    Example response (abridged):
    {
        "status": "completed_with_failures",
        "message": "Batch processing completed. 4 successful, 1 failed. 3 new, 1 updated.",
        "created_count": 3,
        "updated_count": 1,
        "statistics": {"total_files": 5, "batches_processed": 2, ...},
        "file_outcomes": [...],
        "commit_outcomes": [...]
    }
    """
    documents = [await _read_upload(f) for f in files]
    logger.info("Batch upload received", user_id=x_user_id, files=len(documents))
    report = await services.pipeline.ingest(
        x_user_id, documents, batch_size=batch_size, concurrency=concurrency
    )
    return _report_response(report)


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    x_user_id: str = Header(...),
    limit: int = Query(default=DEFAULT_LIST_LIMIT, ge=1, le=500),
    services: Services = Depends(get_services),
):
    """List the caller's invoices, most recently updated first."""
    invoices = await services.library.list_invoices(x_user_id, limit=limit)
    return InvoiceListResponse(total=len(invoices), invoices=invoices)


@router.get("/stats", response_model=InvoiceStats)
async def invoice_stats(x_user_id: str = Header(...), services: Services = Depends(get_services)):
    return await services.library.stats(x_user_id)


@router.get("/{record_id}", response_model=StoredInvoiceRecord)
async def get_invoice(record_id: str, x_user_id: str = Header(...), services: Services = Depends(get_services)):
    record = await services.library.get_invoice(x_user_id, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return record


@router.delete("/{record_id}", response_model=DeleteResponse)
async def delete_invoice(record_id: str, x_user_id: str = Header(...), services: Services = Depends(get_services)):
    if not await services.library.delete_invoice(x_user_id, record_id):
        raise HTTPException(status_code=404, detail="Invoice not found")
    return DeleteResponse(success=True, message="Invoice deleted successfully")
