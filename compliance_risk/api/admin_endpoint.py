"""
Admin API — batch compliance check, job log, scoring policy and GST rules.

Endpoints:
  POST /v1/admin/compliance-check
    → Assess many clients in one job (one job_log entry, jobType=compliance_check)

  GET  /v1/admin/jobs, /jobs/{job_id}
    → Job log (newest first)

  GET  /v1/admin/policy
    → Effective scoring weights and thresholds

  GET/POST /v1/admin/rules, POST /v1/admin/rules/{rule_code}/deactivate
    → Due date / late fee / interest / filing requirement rules

All endpoints require the admin role.
"""
from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from compliance_risk.api.dependencies import get_job_store, get_policy, get_risk_store, get_rule_store
from compliance_risk.core.auth import require_admin
from compliance_risk.core.config import Settings, get_settings
from compliance_risk.schemas.compliance_rules import ComplianceRuleDocument, RuleType
from compliance_risk.schemas.jobs import BatchAssessmentRequest, JobLogResponse, JobStatus, JobType
from compliance_risk.scoring.policy import ScoringPolicy
from compliance_risk.scoring.rules import active_rules
from compliance_risk.services.compliance_check import run_compliance_check
from compliance_risk.services.job_log import JobLogStore
from compliance_risk.services.risk_store import ClientRiskStore
from compliance_risk.services.rule_store import ComplianceRuleStore, DuplicateRule, RuleNotFound

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/admin", tags=["admin"])


# ══ Batch Job Trigger ═════════════════════════════════════════════════════

@router.post(
    "/compliance-check",
    response_model=JobLogResponse,
    summary="Run the compliance check over a batch of clients",
    description=(
        "Assesses every client in the payload independently and upserts its "
        "risk record. A failing client is counted and recorded in the job log "
        "without aborting the batch. A job-level failure is retried with "
        "exponential backoff until the job completes or runs out of retries."
    ),
)
async def trigger_compliance_check(
    request: BatchAssessmentRequest,
    token: dict = Depends(require_admin),
    store: ClientRiskStore = Depends(get_risk_store),
    job_store: JobLogStore = Depends(get_job_store),
    policy: ScoringPolicy = Depends(get_policy),
    settings: Settings = Depends(get_settings),
) -> JobLogResponse:
    user = token.get("sub", "unknown")
    logger.info("compliance_check_triggered", triggered_by=user, clients=len(request.items))

    try:
        job = await run_compliance_check(
            request.items,
            store,
            job_store,
            policy,
            triggered_by=request.triggered_by,
            job_name=request.job_name,
            max_retries=settings.job_max_retries,
            retry_backoff_seconds=settings.job_retry_backoff_seconds,
            assessed_by=user,
        )
    except Exception as e:
        logger.error("compliance_check_trigger_failed", error=str(e), triggered_by=user)
        raise HTTPException(
            status_code=500,
            detail=f"Compliance check failed: {e}",
        )

    return job.to_response()


# ══ Job Log ═══════════════════════════════════════════════════════════════

@router.get("/jobs", response_model=list[JobLogResponse])
async def list_jobs(
    job_type: Optional[JobType] = None,
    status: Optional[JobStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    token: dict = Depends(require_admin),
    job_store: JobLogStore = Depends(get_job_store),
):
    return await job_store.list_jobs(job_type=job_type, status=status, limit=limit)


@router.get("/jobs/{job_id}", response_model=JobLogResponse)
async def get_job(
    job_id: str,
    token: dict = Depends(require_admin),
    job_store: JobLogStore = Depends(get_job_store),
):
    job = await job_store.get(job_id)
    if job is None:
        raise HTTPException(404, f"Job {job_id} not found")
    return job


# ══ Scoring Policy ════════════════════════════════════════════════════════

@router.get("/policy")
async def get_scoring_policy(
    token: dict = Depends(require_admin),
    policy: ScoringPolicy = Depends(get_policy),
):
    return asdict(policy)


# ══ Compliance Rules ══════════════════════════════════════════════════════

@router.get("/rules", response_model=list[ComplianceRuleDocument])
async def list_rules(
    rule_type: Optional[RuleType] = None,
    effective_at: Optional[datetime] = Query(None, description="Only rules in effect at this instant"),
    token: dict = Depends(require_admin),
    rule_store: ComplianceRuleStore = Depends(get_rule_store),
):
    rules = await rule_store.list_rules(rule_type=rule_type)
    if effective_at is not None:
        rules = active_rules(rules, at=effective_at)
    return rules


@router.post("/rules", response_model=ComplianceRuleDocument, status_code=201)
async def create_rule(
    body: ComplianceRuleDocument,
    token: dict = Depends(require_admin),
    rule_store: ComplianceRuleStore = Depends(get_rule_store),
):
    rule = body.root.model_copy(update={"created_by": token.get("sub", "unknown")})
    try:
        return await rule_store.create(rule)
    except DuplicateRule as e:
        raise HTTPException(409, str(e))


@router.post("/rules/{rule_code}/deactivate", response_model=ComplianceRuleDocument)
async def deactivate_rule(
    rule_code: str,
    token: dict = Depends(require_admin),
    rule_store: ComplianceRuleStore = Depends(get_rule_store),
):
    try:
        return await rule_store.deactivate(rule_code, updated_by=token.get("sub", "unknown"))
    except RuleNotFound as e:
        raise HTTPException(404, str(e))
