"""
compliance_check.py
───────────────────
Assess-and-store for one client, and the batch compliance check job that
runs it over many clients.

Flow per client:
  aggregator (caller) → RiskFactorSet → lock client → read previous record
  → engine.assess → upsert → publish event

Batch semantics:
  - every client is assessed independently; one client failing increments
    the job's `failed` counter, records error/error_stack and moves on
  - a client listed twice in one batch is assessed once, repeats are skipped
  - a job-level failure (job log unavailable mid-run) marks the job
    `retrying`; the runner waits until next_retry_at and re-runs the whole
    batch until the job is `completed` or retries are exhausted (`failed`)

A single-client assessment through the API is logged as a one-client job.

Usage:
  POST /v1/compliance/assess         (one client, logged job)
  POST /v1/admin/compliance-check   (items gathered by the aggregator)
"""
from __future__ import annotations

import asyncio
from collections import Counter
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Sequence

import structlog

from compliance_risk.core.metrics import ComplianceMetrics
from compliance_risk.schemas.assessment import AssessmentRequest, ClientRiskAssessment
from compliance_risk.schemas.jobs import JobStatus, JobType, TriggeredBy
from compliance_risk.schemas.risk_factors import RiskFactorSet
from compliance_risk.scoring.engine import assess
from compliance_risk.scoring.policy import DEFAULT_POLICY, ScoringPolicy
from compliance_risk.services.event_publisher import publish_risk_event
from compliance_risk.services.job_log import JobLogStore, JobRun
from compliance_risk.services.risk_store import ClientRiskStore

logger = structlog.get_logger(__name__)

# Persist job progress every N clients
PROGRESS_SAVE_EVERY = 50


async def assess_and_store(
    store: ClientRiskStore,
    client_id: str,
    factors: RiskFactorSet,
    policy: ScoringPolicy = DEFAULT_POLICY,
    assessed_by: Optional[str] = None,
    assessed_at: Optional[datetime] = None,
) -> ClientRiskAssessment:
    async with store.client_transaction(client_id):
        previous = await store.get(client_id)
        record = assess(
            client_id,
            factors,
            previous=previous,
            policy=policy,
            assessed_by=assessed_by,
            assessed_at=assessed_at,
        )
        await store.upsert(record, policy)

    await publish_risk_event(record)
    return record


def new_compliance_check_job(
    triggered_by: TriggeredBy = TriggeredBy.SCHEDULE,
    job_name: str = "Compliance Check",
    max_retries: int = 3,
    retry_backoff_seconds: int = 60,
    client_id: Optional[str] = None,
) -> JobRun:
    return JobRun(
        job_name=job_name,
        job_type=JobType.COMPLIANCE_CHECK,
        triggered_by=triggered_by,
        client_id=client_id,
        max_retries=max_retries,
        retry_backoff_seconds=retry_backoff_seconds,
    )


async def run_client_assessment(
    store: ClientRiskStore,
    job_store: JobLogStore,
    client_id: str,
    factors: RiskFactorSet,
    policy: ScoringPolicy = DEFAULT_POLICY,
    triggered_by: TriggeredBy = TriggeredBy.API,
    assessed_by: Optional[str] = None,
) -> ClientRiskAssessment:
    """
    Assesses one client and records the run as a one-client job
    (processed=1, successful or failed). Nothing retries a single-client
    run, so a failure marks the job `failed` and is re-raised.
    """
    job = new_compliance_check_job(
        triggered_by, job_name="Client Assessment", max_retries=0, client_id=client_id,
    )
    job.start(total=1)
    try:
        record = await assess_and_store(store, client_id, factors, policy, assessed_by=assessed_by)
    except Exception as e:
        job.record_failure(client_id, e)
        job.fail(e)
        await _save_job_log(job_store, job)
        raise

    job.record_success()
    job.complete(summary={
        "compliance_status": record.compliance_status.value,
        "risk_score": record.risk_score,
    })
    await _save_job_log(job_store, job)
    return record


async def _save_job_log(job_store: JobLogStore, job: JobRun) -> None:
    # The client record is already committed; a lost log entry must not undo it
    ComplianceMetrics.jobs_total.labels(job_type=job.job_type.value, status=job.status.value).inc()
    try:
        await job_store.save(job)
    except Exception as e:
        logger.error("job_log_save_failed", job_id=job.job_id, client_id=job.client_id, error=str(e))


async def execute_compliance_check(
    job: JobRun,
    items: Sequence[AssessmentRequest],
    store: ClientRiskStore,
    job_store: JobLogStore,
    policy: ScoringPolicy = DEFAULT_POLICY,
    assessed_by: Optional[str] = None,
) -> JobRun:
    """
    Runs (or re-runs, for a job in `retrying`) the batch and returns the job
    in its final state for this attempt. Re-raises job-level failures after
    recording them.
    """
    job.start(total=len(items))
    logger.info("compliance_check_started", job_id=job.job_id, clients=len(items), attempt=job.retry_count + 1)

    statuses: Counter[str] = Counter()
    seen: set[str] = set()
    try:
        await job_store.save(job)

        for i, item in enumerate(items, start=1):
            if item.client_id in seen:
                job.record_skip(item.client_id, "duplicate client in batch")
                continue
            seen.add(item.client_id)

            try:
                record = await assess_and_store(
                    store, item.client_id, item.factors, policy, assessed_by=assessed_by,
                )
            except Exception as e:
                job.record_failure(item.client_id, e)
                ComplianceMetrics.batch_client_failures_total.inc()
                logger.error(
                    "compliance_check_client_failed",
                    job_id=job.job_id,
                    client_id=item.client_id,
                    error=str(e),
                )
            else:
                job.record_success()
                statuses[record.compliance_status.value] += 1

            if i % PROGRESS_SAVE_EVERY == 0:
                await job_store.save(job)

        job.complete(summary={
            "clients_checked": job.successful,
            "clients_failed": job.failed,
            "clients_skipped": job.skipped,
            "total_clients": len(items),
            "status_counts": dict(statuses),
            "compliance_issues_found": statuses["warning"] + statuses["critical"],
        })
    except Exception as e:
        job.fail(e)
        ComplianceMetrics.jobs_total.labels(job_type=job.job_type.value, status=job.status.value).inc()
        logger.error(
            "compliance_check_failed",
            job_id=job.job_id,
            status=job.status.value,
            retry_count=job.retry_count,
            next_retry_at=job.next_retry_at.isoformat() if job.next_retry_at else None,
            error=str(e),
        )
        try:
            await job_store.save(job)
        except Exception as save_error:
            logger.error("job_log_save_failed", job_id=job.job_id, error=str(save_error))
        raise

    await job_store.save(job)
    ComplianceMetrics.jobs_total.labels(job_type=job.job_type.value, status=job.status.value).inc()
    logger.info(
        "compliance_check_complete",
        job_id=job.job_id,
        processed=job.processed,
        successful=job.successful,
        failed=job.failed,
        skipped=job.skipped,
        duration_ms=job.duration_ms,
    )
    return job


async def run_compliance_check(
    items: Sequence[AssessmentRequest],
    store: ClientRiskStore,
    job_store: JobLogStore,
    policy: ScoringPolicy = DEFAULT_POLICY,
    triggered_by: TriggeredBy = TriggeredBy.SCHEDULE,
    job_name: str = "Compliance Check",
    max_retries: int = 3,
    retry_backoff_seconds: int = 60,
    assessed_by: Optional[str] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> JobRun:
    """
    Full batch cycle:
      1. Create the job log entry (queued)
      2. Assess every client independently
      3. On a job-level failure, wait until next_retry_at and re-run
      4. Record counters + summary, return the completed job

    Raises the last job-level error once retries are exhausted.
    """
    job = new_compliance_check_job(triggered_by, job_name, max_retries, retry_backoff_seconds)
    await job_store.save(job)

    while True:
        try:
            return await execute_compliance_check(job, items, store, job_store, policy, assessed_by)
        except Exception:
            if job.status != JobStatus.RETRYING:
                raise

        delay = max(0.0, (job.next_retry_at - datetime.now(timezone.utc)).total_seconds())
        logger.info(
            "compliance_check_retry_scheduled",
            job_id=job.job_id,
            retry_count=job.retry_count,
            delay_seconds=round(delay, 3),
        )
        await sleep(delay)
