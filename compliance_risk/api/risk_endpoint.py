"""
POST /v1/compliance/assess

Called by the scheduler (per client, per period) or the admin portal.
Synchronous request → score → upsert → job log entry → response.
Exactly one stored record per client; the previous score moves into the
history fields on every assessment.
"""
from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from compliance_risk.api.dependencies import get_job_store, get_policy, get_risk_store
from compliance_risk.core.auth import verify_token
from compliance_risk.schemas.assessment import (
    AssessmentRequest,
    ClientRiskAssessment,
    ComplianceStatus,
)
from compliance_risk.scoring.engine import MODEL_VERSION
from compliance_risk.scoring.policy import ScoringPolicy
from compliance_risk.services.compliance_check import run_client_assessment
from compliance_risk.services.job_log import JobLogStore
from compliance_risk.services.risk_store import ClientRiskStore, InconsistentRiskRecord

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/compliance", tags=["compliance"])


@router.post(
    "/assess",
    response_model=ClientRiskAssessment,
    summary="Assess compliance risk for one GST client",
    description="Scores the supplied risk factors, classifies the client and upserts its risk record.",
)
async def assess_client(
    request: AssessmentRequest,
    token_payload: dict = Depends(verify_token),
    store: ClientRiskStore = Depends(get_risk_store),
    job_store: JobLogStore = Depends(get_job_store),
    policy: ScoringPolicy = Depends(get_policy),
) -> ClientRiskAssessment:

    caller = token_payload.get("sub", "unknown")
    logger.info("compliance_assessment_started", client_id=request.client_id, caller=caller)

    try:
        return await run_client_assessment(
            store, job_store, request.client_id, request.factors, policy, assessed_by=caller,
        )
    except InconsistentRiskRecord as e:
        logger.error("risk_record_rejected", client_id=request.client_id, error=str(e))
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error("assessment_failed", client_id=request.client_id, error=str(e))
        raise HTTPException(status_code=500, detail=f"Scoring engine error: {e}")


@router.get("/clients/{client_id}", response_model=ClientRiskAssessment)
async def get_client_risk(
    client_id: str,
    token_payload: dict = Depends(verify_token),
    store: ClientRiskStore = Depends(get_risk_store),
) -> ClientRiskAssessment:
    record = await store.get(client_id)
    if record is None:
        raise HTTPException(404, f"No risk assessment for client {client_id}")
    return record


@router.get("/clients", response_model=list[ClientRiskAssessment])
async def list_client_risks(
    status: Optional[ComplianceStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    token_payload: dict = Depends(verify_token),
    store: ClientRiskStore = Depends(get_risk_store),
) -> list[ClientRiskAssessment]:
    return await store.list_records(status=status, limit=limit)


@router.get("/health", tags=["health"])
async def health():
    return {"status": "ok", "service": "gst-compliance-risk", "model_version": MODEL_VERSION}
