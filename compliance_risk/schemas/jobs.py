"""
Background job bookkeeping — request/response shapes for the batch
compliance check and the job log.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from compliance_risk.schemas.assessment import AssessmentRequest


class JobType(str, Enum):
    COMPLIANCE_CHECK = "compliance_check"
    CUSTOM = "custom"


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"


class TriggeredBy(str, Enum):
    SCHEDULE = "schedule"
    MANUAL = "manual"
    WEBHOOK = "webhook"
    API = "api"


class JobLogResponse(BaseModel):
    job_id: str
    job_name: str
    job_type: JobType
    status: JobStatus
    client_id: Optional[str] = None

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None

    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0

    error: Optional[str] = None
    error_stack: Optional[str] = None
    error_details: Optional[dict[str, Any]] = None

    retry_count: int = 0
    max_retries: int = 3
    next_retry_at: Optional[datetime] = None

    progress: int = Field(0, ge=0, le=100)
    progress_message: Optional[str] = None
    scheduled_for: Optional[datetime] = None
    triggered_by: TriggeredBy = TriggeredBy.SCHEDULE

    summary: Optional[dict[str, Any]] = None
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime


class BatchAssessmentRequest(BaseModel):
    """
    POST /v1/admin/compliance-check

    One factor set per client, gathered by the filing/invoice aggregator.
    """
    items: list[AssessmentRequest] = Field(min_length=1)
    triggered_by: TriggeredBy = TriggeredBy.MANUAL
    job_name: str = "Compliance Check"
