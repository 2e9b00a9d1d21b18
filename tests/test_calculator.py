"""
Unit tests for the sub-score and aggregate risk score calculator.
"""
from decimal import Decimal

import pytest

from compliance_risk.schemas.risk_factors import RiskFactorSet
from compliance_risk.scoring.calculator import (
    clamp,
    compute_risk_score,
    round_half_away,
    score_document_compliance,
    score_filing_trend,
    score_itc_compliance,
)
from compliance_risk.scoring.engine import assess
from compliance_risk.scoring.policy import ScoringPolicy


def _factors(**overrides) -> RiskFactorSet:
    """A fully compliant client, then override specific fields."""
    kwargs = {
        "overdue_days_avg": 0.0,
        "overdue_filings_count": 0,
        "filing_accuracy": 100.0,
        "incomplete_docs_count": 0,
        "itc_claim_accuracy": 100.0,
        "itc_mismatch_count": 0,
        "amendment_rate": 0.0,
    }
    kwargs.update(overrides)
    return RiskFactorSet(**kwargs)


class TestRounding:

    def test_half_rounds_up(self):
        assert round_half_away(Decimal("25.5")) == 26
        assert round_half_away(2.5) == 3

    def test_negative_half_rounds_away_from_zero(self):
        assert round_half_away(-2.5) == -3

    def test_places(self):
        assert round_half_away(Decimal("-16.65"), places=1) == Decimal("-16.7")

    def test_clamp(self):
        assert clamp(-5) == 0
        assert clamp(120) == 100
        assert clamp(42.5) == Decimal("42.5")


class TestSubScores:

    def test_document_penalty_per_missing_doc(self):
        assert score_document_compliance(2) == 80

    def test_document_score_floors_at_zero(self):
        assert score_document_compliance(15) == 0

    def test_itc_penalty_capped_at_accuracy(self):
        """Mismatch penalty never drives the score below zero."""
        assert score_itc_compliance(20, 10) == 0
        assert score_itc_compliance(90, 3) == 75

    def test_filing_trend(self):
        assert score_filing_trend(80, 20) == 70

    def test_filing_trend_penalty_capped_at_accuracy(self):
        assert score_filing_trend(30, 500) == 0

    def test_custom_penalties(self):
        policy = ScoringPolicy(penalty_per_incomplete_doc=25)
        assert score_document_compliance(2, policy) == 50


class TestComputeRiskScore:

    def test_fully_compliant_client_scores_zero(self):
        scores = compute_risk_score(_factors())
        assert scores.risk_score == 0
        assert scores.filing_trend_score == 100
        assert scores.document_compliance_score == 100
        assert scores.itc_compliance_score == 100

    def test_mixed_client_rounds_half_up(self):
        """70 / 80 / 75 → 100 − 74.5 = 25.5 → 26."""
        scores = compute_risk_score(_factors(
            overdue_days_avg=20,
            overdue_filings_count=4,
            filing_accuracy=80,
            incomplete_docs_count=2,
            itc_claim_accuracy=90,
            itc_mismatch_count=3,
            amendment_rate=10,
        ))
        assert scores.filing_trend_score == 70
        assert scores.document_compliance_score == 80
        assert scores.itc_compliance_score == 75
        assert scores.risk_score == 26

    def test_worst_case_client_scores_hundred(self):
        scores = compute_risk_score(_factors(
            overdue_days_avg=400,
            filing_accuracy=0,
            incomplete_docs_count=20,
            itc_claim_accuracy=0,
            itc_mismatch_count=50,
        ))
        assert scores.risk_score == 100

    def test_aggregate_uses_unrounded_sub_scores(self):
        """filing 99.5 (not 100) feeds the aggregate: 100 − 99.8 = 0.2 → 0."""
        scores = compute_risk_score(_factors(overdue_days_avg=1))
        assert scores.filing_trend_score == 100
        assert scores.risk_score == 0

    def test_deterministic(self):
        factors = _factors(overdue_days_avg=7.3, incomplete_docs_count=1, itc_mismatch_count=2)
        results = {compute_risk_score(factors) for _ in range(20)}
        assert len(results) == 1

    def test_amendment_rate_not_weighted(self):
        assert compute_risk_score(_factors(amendment_rate=90)) == compute_risk_score(_factors())

    @pytest.mark.parametrize("overrides", [
        {"filing_accuracy": 250.0},
        {"filing_accuracy": -40.0},
        {"itc_claim_accuracy": 180.0},
        {"overdue_days_avg": -10.0},
        {"incomplete_docs_count": -3},
        {"itc_mismatch_count": -8},
    ])
    def test_out_of_range_inputs_stay_in_range(self, overrides):
        scores = compute_risk_score(_factors(**overrides))
        for value in scores.model_dump().values():
            assert 0 <= value <= 100

    def test_more_missing_docs_never_lowers_risk(self):
        scores = [compute_risk_score(_factors(incomplete_docs_count=n)).risk_score for n in range(15)]
        assert scores == sorted(scores)

    def test_previous_does_not_change_score(self):
        previous = assess("GSTIN-01", _factors(incomplete_docs_count=9))
        factors = _factors(incomplete_docs_count=1)
        assert compute_risk_score(factors, previous) == compute_risk_score(factors)
