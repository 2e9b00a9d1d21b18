"""
Compliance Risk Assessment Engine

Orchestrates, for one client:
  1. Data-quality check (out-of-range factors are reported, then clamped)
  2. Sub-scores + aggregate risk score
  3. Issue flags, recurrence against the previous record
  4. Status + recommended actions
  5. Trend vs the previous stored score

Pure apart from logging and metrics: no I/O, no shared state. Persistence
and per-client serialization are the caller's job (services/risk_store.py).
"""
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional

import structlog

from compliance_risk.core.metrics import ComplianceMetrics
from compliance_risk.schemas.assessment import ClientRiskAssessment
from compliance_risk.schemas.risk_factors import RiskFactorSet
from compliance_risk.scoring.calculator import compute_risk_score
from compliance_risk.scoring.classifier import classify, derive_flags
from compliance_risk.scoring.policy import DEFAULT_POLICY, ScoringPolicy
from compliance_risk.scoring.trend import apply_trend, detect_recurrence

logger = structlog.get_logger()

MODEL_VERSION = "1.0"


def assess(
    client_id: str,
    factors: RiskFactorSet,
    previous: Optional[ClientRiskAssessment] = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
    assessed_by: Optional[str] = None,
    assessed_at: Optional[datetime] = None,
) -> ClientRiskAssessment:
    """
    Main assessment entry point.
    """
    t0 = time.perf_counter()

    if previous is not None and previous.client_id != client_id:
        raise ValueError(
            f"Previous record belongs to client {previous.client_id}, not {client_id}"
        )

    # ── Step 1: Data quality ──
    for field, value in factors.out_of_range_fields().items():
        ComplianceMetrics.factor_clamps_total.labels(field=field).inc()
        logger.warning("risk_factor_out_of_range", client_id=client_id, field=field, value=value)

    # ── Step 2: Scores ──
    scores = compute_risk_score(factors, previous, policy)

    # ── Step 3: Flags ──
    issue_flags = derive_flags(factors)
    flags = issue_flags.model_copy(update={"has_recurrent_issues": detect_recurrence(issue_flags, previous)})

    # ── Step 4: Status ──
    classification = classify(scores.risk_score, flags, factors.overdue_filings_count, policy)

    # ── Step 5: Trend ──
    trend = apply_trend(scores.risk_score, previous)

    ComplianceMetrics.assessments_total.labels(
        compliance_status=classification.compliance_status.value,
    ).inc()
    ComplianceMetrics.assessment_duration_seconds.observe(time.perf_counter() - t0)

    logger.info(
        "compliance_assessment_complete",
        client_id=client_id,
        risk_score=scores.risk_score,
        compliance_status=classification.compliance_status.value,
        previous_risk_score=trend.previous_risk_score,
        score_change_percentage=trend.score_change_percentage,
        recurrent=flags.has_recurrent_issues,
    )

    return ClientRiskAssessment(
        client_id=client_id,
        risk_score=scores.risk_score,
        compliance_status=classification.compliance_status,
        factors=factors,
        flags=flags,
        filing_trend_score=scores.filing_trend_score,
        document_compliance_score=scores.document_compliance_score,
        itc_compliance_score=scores.itc_compliance_score,
        previous_risk_score=trend.previous_risk_score,
        score_change_percentage=trend.score_change_percentage,
        recommended_actions=classification.recommended_actions,
        model_version=MODEL_VERSION,
        last_assessed_at=assessed_at or datetime.now(timezone.utc),
        assessed_by=assessed_by,
    )
