"""
Scoring policy — weights, penalties and status thresholds.

Passed explicitly into the calculator and classifier instead of being read
from a process-wide settings object. Build it from Settings at the edges
(API dependency, batch job) and hand it down.
"""
from __future__ import annotations

from dataclasses import dataclass

from compliance_risk.core.config import Settings


@dataclass(frozen=True)
class ScoringPolicy:
    # ── Sub-score weights, must sum to 1.0 ──
    weight_filing_trend: float = 0.4
    weight_document_compliance: float = 0.3
    weight_itc_compliance: float = 0.3

    # ── Penalties ──
    penalty_per_incomplete_doc: float = 10.0
    penalty_per_itc_mismatch: float = 5.0
    penalty_per_overdue_day: float = 0.5

    # ── Status thresholds (risk score, higher = worse) ──
    #   score >= critical → critical
    #   score >= warning  → warning
    #   otherwise         → good
    threshold_warning: float = 30.0
    threshold_critical: float = 70.0

    # Overdue filings at which status is forced to at least warning
    override_min_overdue_filings: int = 3

    def __post_init__(self) -> None:
        weights = (
            self.weight_filing_trend,
            self.weight_document_compliance,
            self.weight_itc_compliance,
        )
        if any(w < 0 for w in weights):
            raise ValueError("Scoring weights must be non-negative")
        if abs(sum(weights) - 1.0) > 1e-9:
            raise ValueError(f"Scoring weights must sum to 1.0, got {sum(weights):.4f}")
        if not 0 < self.threshold_warning < self.threshold_critical <= 100:
            raise ValueError(
                "Thresholds must satisfy 0 < warning < critical <= 100, "
                f"got warning={self.threshold_warning} critical={self.threshold_critical}"
            )
        if min(self.penalty_per_incomplete_doc, self.penalty_per_itc_mismatch, self.penalty_per_overdue_day) < 0:
            raise ValueError("Penalties must be non-negative")
        if self.override_min_overdue_filings < 1:
            raise ValueError("override_min_overdue_filings must be >= 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringPolicy":
        return cls(
            weight_filing_trend=settings.weight_filing_trend,
            weight_document_compliance=settings.weight_document_compliance,
            weight_itc_compliance=settings.weight_itc_compliance,
            penalty_per_incomplete_doc=settings.penalty_per_incomplete_doc,
            penalty_per_itc_mismatch=settings.penalty_per_itc_mismatch,
            penalty_per_overdue_day=settings.penalty_per_overdue_day,
            threshold_warning=settings.threshold_warning,
            threshold_critical=settings.threshold_critical,
            override_min_overdue_filings=settings.override_min_overdue_filings,
        )


DEFAULT_POLICY = ScoringPolicy()
