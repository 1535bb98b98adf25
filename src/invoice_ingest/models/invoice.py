
import re
from dataclasses import dataclass
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..services.invoice_types import ExtractedInvoice


def safe_filename(filename: str) -> str:
    """Lowercase the name and replace anything outside [a-z0-9] with '_'."""
    return re.sub(r"[^a-z0-9]", "_", filename.lower())


@dataclass(frozen=True)
class UploadedDocument:
    """A document blob as received from the caller."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class FileReference:
    """Where the original PDF lives, if it was stored somewhere."""

    url: Optional[str] = None
    size: Optional[int] = None


class FileOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    success: bool
    data: Optional[ExtractedInvoice] = None
    error: Optional[str] = None
    processing_time_ms: float = 0.0
    retryable: bool = False


class StoredInvoiceRecord(BaseModel):
    id: str
    user_id: str
    filename: str
    original_filename: str
    file_url: Optional[str] = None
    file_size: Optional[int] = None
    invoice_number: str = ""
    total_amount: float = 0.0
    invoice_date: str = ""
    vendor_name: str = ""  # always Identity Normalizer output
    processing_metadata: dict[str, Any] = Field(default_factory=dict)
    extracted_data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class CommitStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"


class DuplicateCheck(str, Enum):
    MATCHED = "matched"
    NO_MATCH = "no_match"
    BEST_EFFORT = "best_effort"  # lookup failed, treated as no match


class CommitOutcome(BaseModel):
    status: CommitStatus
    filename: str
    message: str
    record: Optional[StoredInvoiceRecord] = None
    duplicate_check: DuplicateCheck = DuplicateCheck.NO_MATCH


class RunStatus(str, Enum):
    NOT_ATTEMPTED = "not_attempted"
    COMPLETED_WITH_FAILURES = "completed_with_failures"
    SUCCEEDED = "succeeded"


class BatchStatistics(BaseModel):
    total_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    total_processing_time_ms: float = 0.0
    average_processing_time_ms: float = 0.0
    batches_processed: int = 0
    batch_size: int = 0
    concurrent_batches: int = 0

    @classmethod
    def from_outcomes(
        cls, outcomes: list[FileOutcome], batches: int, batch_size: int, concurrency: int
    ) -> "BatchStatistics":
        successful = sum(1 for o in outcomes if o.success)
        total_time = sum(o.processing_time_ms for o in outcomes)
        return cls(
            total_files=len(outcomes),
            successful_files=successful,
            failed_files=len(outcomes) - successful,
            total_processing_time_ms=total_time,
            average_processing_time_ms=total_time / len(outcomes) if outcomes else 0.0,
            batches_processed=batches,
            batch_size=batch_size,
            concurrent_batches=concurrency,
        )


class IngestionReport(BaseModel):
    status: RunStatus
    message: str
    file_outcomes: list[FileOutcome] = Field(default_factory=list)
    commit_outcomes: list[CommitOutcome] = Field(default_factory=list)
    statistics: BatchStatistics = Field(default_factory=BatchStatistics)
    error_type: Optional[str] = None  # "validation", "configuration" or "unavailable"
    retry_after_seconds: Optional[int] = None
    setup_required: bool = False

    @computed_field
    @property
    def created_count(self) -> int:
        return sum(1 for c in self.commit_outcomes if c.status == CommitStatus.CREATED)

    @computed_field
    @property
    def updated_count(self) -> int:
        return sum(1 for c in self.commit_outcomes if c.status == CommitStatus.UPDATED)

    def summary(self) -> dict:
        """Counts a caller needs to render "N new, M updated" style feedback."""
        return {
            "status": self.status.value,
            "message": self.message,
            "created": self.created_count,
            "updated": self.updated_count,
            "failed_commits": sum(1 for c in self.commit_outcomes if c.status == CommitStatus.FAILED),
            "statistics": self.statistics.model_dump(),
        }
