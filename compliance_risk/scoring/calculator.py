"""
Compliance risk score calculator.

Turns a RiskFactorSet into three sub-scores and one aggregate risk score:

  document_compliance = 100 − incomplete_docs × 10
  itc_compliance      = itc_claim_accuracy − min(itc_mismatches × 5, itc_claim_accuracy)
  filing_trend        = filing_accuracy − min(overdue_days_avg × 0.5, filing_accuracy)
  risk_score          = 100 − (0.4·filing_trend + 0.3·document + 0.3·itc)

Convention: sub-scores are "goodness" (100 = fully compliant), the aggregate
is inverted so a HIGHER risk score means WORSE compliance.

Inputs are clamped to their documented ranges at each step. Arithmetic runs
on Decimal so results like 25.5 round the same way on every platform;
rounding is half away from zero.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from compliance_risk.schemas.assessment import ClientRiskAssessment, ScoreBreakdown
from compliance_risk.schemas.risk_factors import RiskFactorSet
from compliance_risk.scoring.policy import DEFAULT_POLICY, ScoringPolicy

ZERO = Decimal(0)
HUNDRED = Decimal(100)

Number = Union[int, float, Decimal]


def _dec(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.4 as 0.4 instead of its binary expansion
    return Decimal(str(value))


def clamp(value: Number, low: Number = ZERO, high: Number = HUNDRED) -> Decimal:
    return max(_dec(low), min(_dec(high), _dec(value)))


def round_half_away(value: Number, places: int = 0) -> Decimal:
    """Round half away from zero (2.5 → 3, −2.5 → −3)."""
    return _dec(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


# ═══════════════════════════════════════════════════════════════
# Sub-scores: each returns an unrounded Decimal in [0, 100]
# ═══════════════════════════════════════════════════════════════

def score_document_compliance(incomplete_docs_count: Number, policy: ScoringPolicy = DEFAULT_POLICY) -> Decimal:
    missing = max(ZERO, _dec(incomplete_docs_count))
    return clamp(HUNDRED - missing * _dec(policy.penalty_per_incomplete_doc))


def score_itc_compliance(
    itc_claim_accuracy: Number,
    itc_mismatch_count: Number,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> Decimal:
    accuracy = clamp(itc_claim_accuracy)
    mismatches = max(ZERO, _dec(itc_mismatch_count))
    penalty = min(mismatches * _dec(policy.penalty_per_itc_mismatch), accuracy)
    return clamp(accuracy - penalty)


def score_filing_trend(
    filing_accuracy: Number,
    overdue_days_avg: Number,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> Decimal:
    accuracy = clamp(filing_accuracy)
    overdue_days = max(ZERO, _dec(overdue_days_avg))
    penalty = min(overdue_days * _dec(policy.penalty_per_overdue_day), accuracy)
    return clamp(accuracy - penalty)


# ═══════════════════════════════════════════════════════════════
# Aggregate
# ═══════════════════════════════════════════════════════════════

def compute_risk_score(
    factors: RiskFactorSet,
    previous: Optional[ClientRiskAssessment] = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> ScoreBreakdown:
    """
    Pure and idempotent. `previous` is part of the contract for trend
    bookkeeping only and never influences the score.
    """
    filing = score_filing_trend(factors.filing_accuracy, factors.overdue_days_avg, policy)
    document = score_document_compliance(factors.incomplete_docs_count, policy)
    itc = score_itc_compliance(factors.itc_claim_accuracy, factors.itc_mismatch_count, policy)

    # The aggregate uses the unrounded sub-scores; rounding happens once, at the end
    compliance = (
        _dec(policy.weight_filing_trend) * filing
        + _dec(policy.weight_document_compliance) * document
        + _dec(policy.weight_itc_compliance) * itc
    )
    risk = clamp(HUNDRED - compliance)

    return ScoreBreakdown(
        risk_score=int(round_half_away(risk)),
        filing_trend_score=int(round_half_away(filing)),
        document_compliance_score=int(round_half_away(document)),
        itc_compliance_score=int(round_half_away(itc)),
    )
