"""
Evaluation of compliance rules — due dates, late fees, interest,
filing requirements.
"""
from __future__ import annotations

import calendar
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from compliance_risk.schemas.compliance_rules import (
    ComplianceRule,
    FilingRequirementRule,
    GstDueDateRule,
    InterestRule,
    LateFeeRule,
    RuleBase,
)
from compliance_risk.scoring.calculator import round_half_away

PERIOD_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def parse_period(period: str) -> tuple[int, int]:
    """'2026-04' → (2026, 4)"""
    match = PERIOD_RE.match(period)
    if not match:
        raise ValueError(f"period must be YYYY-MM, got {period!r}")
    return int(match.group(1)), int(match.group(2))


def due_date_for(rule: GstDueDateRule, period: str) -> datetime:
    """
    Returns for a period fall due in the following month, on `due_day`
    (clamped to the month's length) at `due_hour`:59 UTC.
    """
    year, month = parse_period(period)
    if month == 12:
        year, month = year + 1, 1
    else:
        month += 1
    day = min(rule.due_day, calendar.monthrange(year, month)[1])
    return datetime(year, month, day, rule.due_hour, 59, tzinfo=timezone.utc)


def days_overdue(due_at: datetime, at: datetime) -> int:
    """Whole days past the due date; 0 when not yet due."""
    if at <= due_at:
        return 0
    return (at - due_at).days


def late_fee_for(rule: LateFeeRule, days_late: int) -> float:
    if days_late <= 0:
        return 0.0
    chargeable = days_late
    if rule.late_fee_max_days is not None:
        chargeable = min(chargeable, rule.late_fee_max_days)
    fee = Decimal(str(rule.late_fee_base)) + Decimal(str(rule.late_fee_per_day)) * chargeable
    if rule.late_fee_max is not None:
        fee = min(fee, Decimal(str(rule.late_fee_max)))
    return float(round_half_away(fee, places=2))


def interest_for(rule: InterestRule, amount: float, days: int) -> float:
    """Simple interest on `amount` over `days`, 365-day year."""
    if amount <= 0 or days <= 0:
        return 0.0
    interest = Decimal(str(amount)) * Decimal(str(rule.interest_rate)) / 100 * days / 365
    return float(round_half_away(interest, places=2))


def filing_required(rule: FilingRequirementRule, annual_turnover: float) -> bool:
    if rule.minimum_turnover is None:
        return True
    return annual_turnover >= rule.minimum_turnover


def is_effective(rule: RuleBase, at: Optional[datetime] = None) -> bool:
    at = at or datetime.now(timezone.utc)
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    if not rule.is_active or at < rule.effective_from:
        return False
    return rule.effective_until is None or at < rule.effective_until


def active_rules(
    rules: Iterable[ComplianceRule],
    rule_type: Optional[str] = None,
    at: Optional[datetime] = None,
) -> list[ComplianceRule]:
    """Rules in effect at `at`, optionally of one type, ordered by rule_code."""
    selected = [
        r for r in rules
        if (rule_type is None or r.rule_type == rule_type) and is_effective(r, at)
    ]
    return sorted(selected, key=lambda r: r.rule_code)
