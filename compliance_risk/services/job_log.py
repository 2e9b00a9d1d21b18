"""
Job log bookkeeping for background jobs.

A JobRun is the in-memory view of one job_log row. Status moves:

  queued → running → completed
                   → failed    (retries exhausted)
                   → retrying  → running → ...

Retries back off exponentially: retry_backoff_seconds × 2^(attempt − 1).
"""
from __future__ import annotations

import traceback
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_risk.models.job_log import JobLog
from compliance_risk.schemas.jobs import JobLogResponse, JobStatus, JobType, TriggeredBy

logger = structlog.get_logger()

ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.RUNNING},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.RETRYING},
    JobStatus.RETRYING: {JobStatus.RUNNING},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


class InvalidJobTransition(ValueError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


@dataclass
class JobRun:
    job_name: str
    job_type: JobType
    triggered_by: TriggeredBy = TriggeredBy.SCHEDULE
    client_id: Optional[str] = None
    max_retries: int = 3
    retry_backoff_seconds: int = 60
    scheduled_for: Optional[datetime] = None
    metadata: Optional[dict[str, Any]] = None

    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=_utcnow)

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None

    total: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0

    error: Optional[str] = None
    error_stack: Optional[str] = None
    error_details: Optional[dict[str, Any]] = None

    retry_count: int = 0
    next_retry_at: Optional[datetime] = None

    progress: int = 0
    progress_message: Optional[str] = None
    summary: Optional[dict[str, Any]] = None

    # ── Status ──

    def transition(self, new_status: JobStatus) -> None:
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidJobTransition(
                f"Job {self.job_id}: cannot move from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def start(self, total: int = 0, at: Optional[datetime] = None) -> None:
        self.transition(JobStatus.RUNNING)
        self.started_at = at or _utcnow()
        self.completed_at = None
        self.duration_ms = None
        self.next_retry_at = None
        # A retry re-runs the whole batch
        self.total = total
        self.processed = self.successful = self.failed = self.skipped = 0
        self.error = self.error_stack = None
        self.error_details = None
        self.progress = 0
        self.progress_message = None

    def complete(self, summary: Optional[dict[str, Any]] = None, at: Optional[datetime] = None) -> None:
        self.transition(JobStatus.COMPLETED)
        self.summary = summary
        self.progress = 100
        self._finish(at)

    def fail(self, exc: BaseException, at: Optional[datetime] = None) -> None:
        """Job-level failure: schedule a retry while attempts remain."""
        at = at or _utcnow()
        self.error = str(exc)
        self.error_stack = format_stack(exc)
        if self.retry_count < self.max_retries:
            self.transition(JobStatus.RETRYING)
            self.retry_count += 1
            delay = self.retry_backoff_seconds * 2 ** (self.retry_count - 1)
            self.next_retry_at = at + timedelta(seconds=delay)
        else:
            self.transition(JobStatus.FAILED)
            self.next_retry_at = None
        self._finish(at)

    def _finish(self, at: Optional[datetime]) -> None:
        self.completed_at = at or _utcnow()
        if self.started_at is not None:
            self.duration_ms = int((self.completed_at - self.started_at).total_seconds() * 1000)

    # ── Counters ──

    def record_success(self) -> None:
        self.processed += 1
        self.successful += 1
        self._update_progress()

    def record_skip(self, key: str, reason: str) -> None:
        self.processed += 1
        self.skipped += 1
        self._details("skipped")[key] = reason
        self._update_progress()

    def record_failure(self, key: str, exc: BaseException) -> None:
        """One item failed; the job carries on with the next one."""
        self.processed += 1
        self.failed += 1
        self.error = f"{key}: {exc}"
        self.error_stack = format_stack(exc)
        self._details("failures")[key] = f"{type(exc).__name__}: {exc}"
        self._update_progress()

    def _details(self, section: str) -> dict[str, str]:
        if self.error_details is None:
            self.error_details = {}
        return self.error_details.setdefault(section, {})

    def _update_progress(self) -> None:
        if self.total > 0:
            self.progress = min(100, int(self.processed * 100 / self.total))
            self.progress_message = f"{self.processed}/{self.total} processed"

    def to_response(self) -> JobLogResponse:
        return JobLogResponse(
            job_id=self.job_id,
            job_name=self.job_name,
            job_type=self.job_type,
            status=self.status,
            client_id=self.client_id,
            started_at=self.started_at,
            completed_at=self.completed_at,
            duration_ms=self.duration_ms,
            processed=self.processed,
            successful=self.successful,
            failed=self.failed,
            skipped=self.skipped,
            error=self.error,
            error_stack=self.error_stack,
            error_details=self.error_details,
            retry_count=self.retry_count,
            max_retries=self.max_retries,
            next_retry_at=self.next_retry_at,
            progress=self.progress,
            progress_message=self.progress_message,
            scheduled_for=self.scheduled_for,
            triggered_by=self.triggered_by,
            summary=self.summary,
            metadata=self.metadata,
            created_at=self.created_at,
        )


# ═══════════════════════════════════════════════════════════════
# Stores
# ═══════════════════════════════════════════════════════════════

class JobLogStore(ABC):

    @abstractmethod
    async def save(self, job: JobRun) -> None:
        ...

    @abstractmethod
    async def get(self, job_id: str) -> Optional[JobLogResponse]:
        ...

    @abstractmethod
    async def list_jobs(
        self,
        job_type: Optional[JobType] = None,
        status: Optional[JobStatus] = None,
        limit: int = 50,
    ) -> list[JobLogResponse]:
        """Newest first."""


def _row_to_response(row: JobLog) -> JobLogResponse:
    return JobLogResponse(
        job_id=row.job_id,
        job_name=row.job_name,
        job_type=JobType(row.job_type),
        status=JobStatus(row.status),
        client_id=row.client_id,
        started_at=row.started_at,
        completed_at=row.completed_at,
        duration_ms=row.duration_ms,
        processed=row.processed,
        successful=row.successful,
        failed=row.failed,
        skipped=row.skipped,
        error=row.error,
        error_stack=row.error_stack,
        error_details=row.error_details,
        retry_count=row.retry_count,
        max_retries=row.max_retries,
        next_retry_at=row.next_retry_at,
        progress=row.progress,
        progress_message=row.progress_message,
        scheduled_for=row.scheduled_for,
        triggered_by=TriggeredBy(row.triggered_by),
        summary=row.summary,
        metadata=row.job_metadata,
        created_at=row.created_at,
    )


class SqlJobLogStore(JobLogStore):

    def __init__(self, db: AsyncSession):
        self._db = db

    async def save(self, job: JobRun) -> None:
        data = job.to_response().model_dump(mode="json", exclude={"metadata", "created_at"})
        # Keep native datetimes for the timestamp columns
        for col in ("started_at", "completed_at", "next_retry_at", "scheduled_for"):
            data[col] = getattr(job, col)
        await self._db.merge(JobLog(**data, job_metadata=job.metadata, created_at=job.created_at))
        await self._db.commit()
        logger.debug("job_log_saved", job_id=job.job_id, status=job.status.value)

    async def get(self, job_id: str) -> Optional[JobLogResponse]:
        row = await self._db.get(JobLog, job_id)
        return _row_to_response(row) if row else None

    async def list_jobs(
        self,
        job_type: Optional[JobType] = None,
        status: Optional[JobStatus] = None,
        limit: int = 50,
    ) -> list[JobLogResponse]:
        stmt = select(JobLog).order_by(JobLog.created_at.desc()).limit(limit)
        if job_type is not None:
            stmt = stmt.where(JobLog.job_type == job_type.value)
        if status is not None:
            stmt = stmt.where(JobLog.status == status.value)
        result = await self._db.execute(stmt)
        return [_row_to_response(row) for row in result.scalars()]
