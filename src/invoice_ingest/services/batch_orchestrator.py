"""
Drives uploaded documents through the extraction service in bounded batches.

Files are split into batches of ``batch_size``; up to ``concurrency`` batches
run at once as a wave, and the next wave starts only after every batch in the
current one has settled. A batch that times out or fails at the transport
level yields a failure outcome for each of its files and never affects its
siblings. Outcomes are reported in schedule order.
"""

import asyncio
from typing import Optional, Sequence

from loguru import logger

from ..core.config import Settings, settings as default_settings
from ..core.errors import ConfigurationError, IngestionError, UnavailableError, ValidationError
from ..models.invoice import FileOutcome, UploadedDocument
from .availability import Sleep
from .extraction_client import ExtractionClient, NotConfiguredExtractionClient


def partition(files: Sequence[UploadedDocument], size: int) -> list[list[UploadedDocument]]:
    """Split ``files`` into ordered batches of at most ``size`` items."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [list(files[i:i + size]) for i in range(0, len(files), size)]


def _batch_failure(batch: Sequence[UploadedDocument], error: BaseException, timeout: float) -> list[FileOutcome]:
    if isinstance(error, asyncio.TimeoutError):
        reason = f"Request timeout after {timeout:g}s"
    elif isinstance(error, IngestionError):
        reason = error.message
    else:
        reason = f"Batch processing failed: {error}"
    retryable = isinstance(error, (asyncio.TimeoutError, UnavailableError))
    return [
        FileOutcome(filename=d.filename, success=False, error=reason, retryable=retryable)
        for d in batch
    ]


class BatchOrchestrator:
    def __init__(
        self,
        client: ExtractionClient | NotConfiguredExtractionClient,
        settings: Settings = default_settings,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.settings = settings
        self._sleep = sleep

    def validate(self, files: Sequence[UploadedDocument]) -> None:
        """Reject the whole submission if any file is the wrong type or too large."""
        if not files:
            raise ValidationError("No files provided")

        limit = self.settings.max_file_size_bytes
        accepted = self.settings.accepted_content_type
        for f in files:
            if f.content_type != accepted:
                raise ValidationError(
                    "Only PDF files are supported",
                    details={"filename": f.filename, "content_type": f.content_type},
                )
            if f.size > limit:
                raise ValidationError(
                    f'File "{f.filename}" exceeds {limit // (1024 * 1024)}MB limit. Please upload smaller files.',
                    details={"filename": f.filename, "size": f.size, "max_size": limit},
                )

    def _require_client(self) -> None:
        if not self.client.configured:
            raise ConfigurationError(
                "Extraction service URL not configured",
                details={"setting": "EXTRACTION_API_BASE_URL"},
            )

    async def _run_batch(self, batch: list[UploadedDocument], timeout: float) -> list[FileOutcome]:
        return await asyncio.wait_for(self.client.parse_multiple(batch, timeout=timeout), timeout=timeout)

    async def process_all(
        self,
        files: Sequence[UploadedDocument],
        batch_size: Optional[int] = None,
        concurrency: Optional[int] = None,
    ) -> list[FileOutcome]:
        """
        Extract every file and return one outcome per file.

        Raises:
            ValidationError: a file failed validation; nothing was sent
            ConfigurationError: no extraction service is configured
        """
        self.validate(files)
        self._require_client()

        batch_size = batch_size or self.settings.batch_size
        concurrency = max(1, concurrency or self.settings.max_concurrent_batches)
        batches = partition(files, batch_size)

        logger.info(
            "Starting batch extraction",
            files=len(files),
            batches=len(batches),
            batch_size=batch_size,
            concurrency=concurrency,
        )

        outcomes: list[FileOutcome] = []
        for start in range(0, len(batches), concurrency):
            wave = batches[start:start + concurrency]
            timeouts = [self.settings.per_file_timeout_seconds * len(b) for b in wave]
            results = await asyncio.gather(
                *(self._run_batch(b, t) for b, t in zip(wave, timeouts)),
                return_exceptions=True,
            )

            for offset, (batch, timeout, result) in enumerate(zip(wave, timeouts, results)):
                if isinstance(result, BaseException):
                    logger.warning(
                        "Batch failed",
                        batch=start + offset + 1,
                        files=[d.filename for d in batch],
                        error=str(result) or type(result).__name__,
                    )
                    outcomes.extend(_batch_failure(batch, result, timeout))
                else:
                    outcomes.extend(result)

            has_next_wave = start + concurrency < len(batches)
            if has_next_wave and self.settings.inter_wave_delay_seconds > 0:
                await self._sleep(self.settings.inter_wave_delay_seconds)

        succeeded = sum(1 for o in outcomes if o.success)
        logger.info(
            f"Batch processing completed. {succeeded} successful, {len(outcomes) - succeeded} failed."
        )
        return outcomes

    async def process_single(self, document: UploadedDocument) -> FileOutcome:
        """Extract one document through the single-file endpoint."""
        self.validate([document])
        self._require_client()

        timeout = self.settings.single_file_timeout_seconds
        try:
            return await asyncio.wait_for(self.client.parse_invoice(document, timeout=timeout), timeout=timeout)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.warning("Single invoice extraction failed", filename=document.filename, error=str(e))
            return _batch_failure([document], e, timeout)[0]
