"""
Write-time checks on client risk records: every stored value must be the
one the engine derives from the record's own risk factors.
"""
import asyncio

import pytest

from compliance_risk.schemas.assessment import ComplianceStatus
from compliance_risk.schemas.risk_factors import RiskFactorSet
from compliance_risk.scoring.engine import assess
from compliance_risk.services.risk_store import InconsistentRiskRecord, validate_record

CLIENT = "GSTIN-27AAACB1234F1Z5"


def _struggling_factors(**overrides) -> RiskFactorSet:
    kwargs = {
        "overdue_days_avg": 20,
        "overdue_filings_count": 4,
        "filing_accuracy": 80,
        "incomplete_docs_count": 2,
        "itc_claim_accuracy": 90,
        "itc_mismatch_count": 3,
    }
    kwargs.update(overrides)
    return RiskFactorSet(**kwargs)


class TestValidateRecord:

    def test_engine_output_accepted(self):
        validate_record(assess(CLIENT, RiskFactorSet()))
        validate_record(assess(CLIENT, _struggling_factors()))

    def test_recurrent_record_accepted(self):
        first = assess(CLIENT, RiskFactorSet(itc_mismatch_count=1))
        validate_record(assess(CLIENT, RiskFactorSet(itc_mismatch_count=2), previous=first))

    def test_warning_without_override_rejected(self):
        """Clean factors score 0; nothing justifies raising good to warning."""
        record = assess(CLIENT, RiskFactorSet())
        with pytest.raises(InconsistentRiskRecord, match="compliance_status"):
            validate_record(record.model_copy(update={"compliance_status": ComplianceStatus.WARNING}))

    def test_override_needs_enough_overdue_filings(self):
        record = assess(CLIENT, _struggling_factors())
        assert record.compliance_status == ComplianceStatus.WARNING

        # Two overdue filings: same scores and flags, but below the override count
        tampered = record.model_copy(update={"factors": _struggling_factors(overdue_filings_count=2)})
        with pytest.raises(InconsistentRiskRecord, match="compliance_status"):
            validate_record(tampered)

    @pytest.mark.parametrize("score", [5, 55])
    def test_score_not_from_factors_rejected(self, score):
        record = assess(CLIENT, RiskFactorSet())
        tampered = record.model_copy(update={"risk_score": score, "compliance_status": ComplianceStatus.WARNING})
        with pytest.raises(InconsistentRiskRecord, match="risk_score"):
            validate_record(tampered)

    def test_sub_score_not_from_factors_rejected(self):
        record = assess(CLIENT, _struggling_factors())
        with pytest.raises(InconsistentRiskRecord, match="document_compliance_score"):
            validate_record(record.model_copy(update={"document_compliance_score": 90}))

    def test_flags_not_from_factors_rejected(self):
        record = assess(CLIENT, RiskFactorSet())
        tampered = record.model_copy(update={"flags": record.flags.model_copy(update={"has_missing_documents": True})})
        with pytest.raises(InconsistentRiskRecord, match="flags"):
            validate_record(tampered)


class TestStoreRejectsBypassedWrites:

    @pytest.mark.parametrize("score", [5, 55])
    def test_upsert_rejects_hand_set_warning(self, risk_store, score):
        record = assess(CLIENT, RiskFactorSet())
        tampered = record.model_copy(update={"risk_score": score, "compliance_status": ComplianceStatus.WARNING})

        with pytest.raises(InconsistentRiskRecord):
            asyncio.run(risk_store.upsert(tampered))
        assert risk_store.records == {}
