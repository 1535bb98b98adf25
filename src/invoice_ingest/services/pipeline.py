"""
End-to-end ingestion: validate, gate, extract, commit.

The report always tells the caller which of three situations it is in:
nothing was attempted (a precondition failed, the user's files are still
theirs to resubmit), some files failed, or everything succeeded.
"""

import asyncio
import math
from typing import Optional, Sequence

from loguru import logger

from ..core.config import Settings, settings as default_settings
from ..core.errors import ConfigurationError, ValidationError
from ..models.invoice import (
    BatchStatistics,
    CommitOutcome,
    CommitStatus,
    FileOutcome,
    IngestionReport,
    RunStatus,
    UploadedDocument,
)
from .availability import AvailabilityGate, RetryPolicy, Sleep
from .batch_orchestrator import BatchOrchestrator
from .persistence import PersistenceCoordinator

RETRY_AFTER_SECONDS = 30


class IngestionPipeline:
    def __init__(
        self,
        orchestrator: BatchOrchestrator,
        coordinator: PersistenceCoordinator,
        gate: Optional[AvailabilityGate] = None,
        settings: Settings = default_settings,
        sleep: Sleep = asyncio.sleep,
    ):
        self.orchestrator = orchestrator
        self.coordinator = coordinator
        self.gate = gate or AvailabilityGate(orchestrator.client, sleep=sleep)
        self.settings = settings

    def _preconditions(self, files: Sequence[UploadedDocument]) -> Optional[IngestionReport]:
        try:
            self.orchestrator.validate(files)
        except ValidationError as e:
            logger.warning("Upload rejected", reason=e.message, **e.details)
            return IngestionReport(status=RunStatus.NOT_ATTEMPTED, message=e.message, error_type="validation")

        if not self.orchestrator.client.configured:
            logger.error("Extraction service URL not configured")
            return IngestionReport(
                status=RunStatus.NOT_ATTEMPTED,
                message="Extraction service URL not configured",
                error_type="configuration",
                setup_required=True,
            )
        return None

    async def _gate(self, policy: RetryPolicy) -> Optional[IngestionReport]:
        health = await self.gate.check(policy)
        if health.ready:
            return None
        return IngestionReport(
            status=RunStatus.NOT_ATTEMPTED,
            message=f"Extraction service is not accessible after {health.attempts} attempt(s): {health.detail}",
            error_type="unavailable",
            retry_after_seconds=RETRY_AFTER_SECONDS,
        )

    async def _commit_all(self, user_id: str, outcomes: Sequence[FileOutcome]) -> list[CommitOutcome]:
        commits = []
        for outcome in outcomes:
            if outcome.success and outcome.data is not None:
                commits.append(await self.coordinator.commit(user_id, outcome.filename, outcome.data))
        return commits

    @staticmethod
    def _finish(
        outcomes: list[FileOutcome], commits: list[CommitOutcome], statistics: BatchStatistics
    ) -> IngestionReport:
        failed_commits = sum(1 for c in commits if c.status == CommitStatus.FAILED)
        all_ok = statistics.failed_files == 0 and failed_commits == 0
        report = IngestionReport(
            status=RunStatus.SUCCEEDED if all_ok else RunStatus.COMPLETED_WITH_FAILURES,
            message="",
            file_outcomes=outcomes,
            commit_outcomes=commits,
            statistics=statistics,
        )
        report.message = (
            f"Batch processing completed. {statistics.successful_files} successful, "
            f"{statistics.failed_files} failed. {report.created_count} new, {report.updated_count} updated."
        )
        if failed_commits:
            report.message += f" {failed_commits} could not be saved."
        return report

    async def ingest(
        self,
        user_id: str,
        files: Sequence[UploadedDocument],
        batch_size: Optional[int] = None,
        concurrency: Optional[int] = None,
    ) -> IngestionReport:
        """Run the full batch path for ``files`` on behalf of ``user_id``."""
        report = self._preconditions(files)
        if report is None:
            report = await self._gate(RetryPolicy.for_batch(self.settings))
        if report is not None:
            return report

        batch_size = batch_size or self.settings.batch_size
        concurrency = concurrency or self.settings.max_concurrent_batches
        try:
            outcomes = await self.orchestrator.process_all(files, batch_size=batch_size, concurrency=concurrency)
        except ValidationError as e:
            return IngestionReport(status=RunStatus.NOT_ATTEMPTED, message=e.message, error_type="validation")
        except ConfigurationError as e:
            return IngestionReport(
                status=RunStatus.NOT_ATTEMPTED, message=e.message, error_type="configuration", setup_required=True
            )

        commits = await self._commit_all(user_id, outcomes)
        statistics = BatchStatistics.from_outcomes(
            outcomes,
            batches=math.ceil(len(files) / batch_size),
            batch_size=batch_size,
            concurrency=concurrency,
        )
        return self._finish(outcomes, commits, statistics)

    async def ingest_one(self, user_id: str, document: UploadedDocument) -> IngestionReport:
        """Single-document path: longer, retried health budget for cold starts."""
        report = self._preconditions([document])
        if report is None:
            report = await self._gate(RetryPolicy.for_single(self.settings))
        if report is not None:
            return report

        outcome = await self.orchestrator.process_single(document)
        commits = await self._commit_all(user_id, [outcome])
        statistics = BatchStatistics.from_outcomes([outcome], batches=1, batch_size=1, concurrency=1)
        return self._finish([outcome], commits, statistics)
