"""
Raw measured inputs for one client in one assessment period.

Produced by the filing/invoice aggregator and sent in the request payload.
The engine never reads filings or invoices itself — everything arrives here.

Range constraints are the producer's job. The model only rejects values that
are not finite numbers; the calculator clamps whatever else comes in so a
single bad upstream value cannot push a score out of [0, 100].
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


PERCENT_FIELDS = ("filing_accuracy", "itc_claim_accuracy", "amendment_rate")
NON_NEGATIVE_FIELDS = (
    "overdue_days_avg",
    "overdue_filings_count",
    "incomplete_docs_count",
    "itc_mismatch_count",
)


class RiskFactorSet(BaseModel):
    """One client, one period. Immutable once built."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    overdue_days_avg: float = Field(0.0, description="Mean days overdue across filings (>= 0)")
    overdue_filings_count: int = Field(0, description="Number of overdue filings (>= 0)")
    filing_accuracy: float = Field(100.0, description="% of filings with no amendment (0-100)")
    incomplete_docs_count: int = Field(0, description="Missing required documents (>= 0)")
    itc_claim_accuracy: float = Field(100.0, description="% of correct ITC claims (0-100)")
    itc_mismatch_count: int = Field(0, description="Unresolved ITC mismatches (>= 0)")
    amendment_rate: float = Field(0.0, description="% of filings amended (0-100), not weighted")

    def out_of_range_fields(self) -> dict[str, float]:
        """Fields the calculator will have to clamp, with their received values."""
        bad: dict[str, float] = {}
        for name in PERCENT_FIELDS:
            value = getattr(self, name)
            if value < 0 or value > 100:
                bad[name] = value
        for name in NON_NEGATIVE_FIELDS:
            value = getattr(self, name)
            if value < 0:
                bad[name] = value
        return bad
