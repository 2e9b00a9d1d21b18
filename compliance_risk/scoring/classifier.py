"""
Compliance status classifier.

Maps a risk score (+ flags) to good / warning / critical and builds the
recommended actions list.
"""
from __future__ import annotations

from compliance_risk.schemas.assessment import (
    Classification,
    ComplianceStatus,
    RiskFlags,
)
from compliance_risk.schemas.risk_factors import RiskFactorSet
from compliance_risk.scoring.policy import DEFAULT_POLICY, ScoringPolicy


# ═══════════════════════════════════════════════════════════════
# Recommended actions in fixed priority order.
# The output list always follows this order, whatever order the
# flags were raised in.
# ═══════════════════════════════════════════════════════════════
ACTION_PRIORITY: list[tuple[str, str]] = [
    (
        "has_overdue_filing",
        "File all overdue GST returns and settle the applicable late fees and interest",
    ),
    (
        "has_unresolved_itc_mismatch",
        "Reconcile ITC claims against GSTR-2B and resolve mismatches with suppliers",
    ),
    (
        "has_missing_documents",
        "Collect the missing client documents required for filing",
    ),
    (
        "has_recurrent_issues",
        "Schedule a compliance review: the same issues recurred in consecutive periods",
    ),
]


def derive_flags(factors: RiskFactorSet, has_recurrent_issues: bool = False) -> RiskFlags:
    """Count-based flags. Recurrence needs the previous record, so it is passed in."""
    return RiskFlags(
        has_overdue_filing=factors.overdue_filings_count > 0,
        has_unresolved_itc_mismatch=factors.itc_mismatch_count > 0,
        has_missing_documents=factors.incomplete_docs_count > 0,
        has_recurrent_issues=has_recurrent_issues,
    )


def status_for_score(risk_score: float, policy: ScoringPolicy = DEFAULT_POLICY) -> ComplianceStatus:
    """Plain threshold lookup, no overrides."""
    if risk_score >= policy.threshold_critical:
        return ComplianceStatus.CRITICAL
    if risk_score >= policy.threshold_warning:
        return ComplianceStatus.WARNING
    return ComplianceStatus.GOOD


def recommended_actions(flags: RiskFlags) -> list[str]:
    return [message for flag, message in ACTION_PRIORITY if getattr(flags, flag)]


def overdue_override_applies(
    flags: RiskFlags,
    overdue_filings_count: int,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> bool:
    """Several overdue filings is a structural problem a low score must not hide."""
    return flags.has_overdue_filing and overdue_filings_count >= policy.override_min_overdue_filings


def classify(
    risk_score: float,
    flags: RiskFlags,
    overdue_filings_count: int = 0,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> Classification:
    status = status_for_score(risk_score, policy)
    if status == ComplianceStatus.GOOD and overdue_override_applies(flags, overdue_filings_count, policy):
        status = ComplianceStatus.WARNING

    return Classification(
        compliance_status=status,
        recommended_actions=recommended_actions(flags),
    )


def is_status_consistent(
    risk_score: float,
    status: ComplianceStatus,
    override_applies: bool = False,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> bool:
    """
    True when `status` is the one classify() produces for `risk_score`: the
    threshold status, or warning raised from good when the overdue-filing
    override applies.
    """
    expected = status_for_score(risk_score, policy)
    if expected == ComplianceStatus.GOOD and override_applies:
        expected = ComplianceStatus.WARNING
    return status == expected
