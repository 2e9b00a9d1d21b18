"""
Trend tracking against the previously stored assessment of the same client.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from compliance_risk.schemas.assessment import ClientRiskAssessment, RiskFlags, TrendResult
from compliance_risk.scoring.calculator import round_half_away

# Flags that describe an issue. has_recurrent_issues is derived from these
# and never counts as a recurrence by itself.
ISSUE_FLAGS = ("has_overdue_filing", "has_unresolved_itc_mismatch", "has_missing_documents")


def apply_trend(current_score: int, previous: Optional[ClientRiskAssessment] = None) -> TrendResult:
    if previous is None:
        return TrendResult()

    prev_score = previous.risk_score
    # Floor of 1 keeps a previous score of 0 from dividing by zero
    change = (Decimal(current_score - prev_score) / Decimal(max(prev_score, 1))) * 100

    return TrendResult(
        previous_risk_score=prev_score,
        score_change_percentage=float(round_half_away(change, places=1)),
    )


def detect_recurrence(current: RiskFlags, previous: Optional[ClientRiskAssessment] = None) -> bool:
    """True when any issue flag is set in both this and the immediately previous period."""
    if previous is None:
        return False
    return any(getattr(current, f) and getattr(previous.flags, f) for f in ISSUE_FLAGS)
