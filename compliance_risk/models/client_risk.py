"""
Client risk table — exactly one row per GST client, updated in place on
every assessment.
Schema: gst_compliance.client_risk
"""
from datetime import datetime
from sqlalchemy import Column, String, Float, Integer, DateTime, JSON, Boolean, CheckConstraint, Index
from sqlalchemy.orm import DeclarativeBase

SCHEMA = "gst_compliance"


class Base(DeclarativeBase):
    pass


class ClientRisk(Base):
    __tablename__ = "client_risk"
    __table_args__ = (
        CheckConstraint("risk_score BETWEEN 0 AND 100", name="ck_client_risk_score_range"),
        CheckConstraint(
            "compliance_status IN ('good', 'warning', 'critical')",
            name="ck_client_risk_status",
        ),
        Index("ix_client_risk_status_score", "compliance_status", "risk_score"),
        {"schema": SCHEMA},
    )

    client_id = Column(String(64), primary_key=True)

    # ── Scoring outputs ──
    risk_score = Column(Integer, nullable=False, default=0, index=True)
    compliance_status = Column(String(10), nullable=False, default="good", index=True)
    model_version = Column(String(10), nullable=False)

    # ── Risk factors of the last assessment ──
    overdue_days_avg = Column(Float, nullable=False, default=0)
    overdue_filings_count = Column(Integer, nullable=False, default=0)
    filing_accuracy = Column(Float, nullable=False, default=100)
    incomplete_docs_count = Column(Integer, nullable=False, default=0)
    itc_claim_accuracy = Column(Float, nullable=False, default=100)
    itc_mismatch_count = Column(Integer, nullable=False, default=0)
    amendment_rate = Column(Float, nullable=False, default=0)

    # ── Flags ──
    has_overdue_filing = Column(Boolean, nullable=False, default=False, index=True)
    has_unresolved_itc_mismatch = Column(Boolean, nullable=False, default=False)
    has_missing_documents = Column(Boolean, nullable=False, default=False)
    has_recurrent_issues = Column(Boolean, nullable=False, default=False)

    # ── Sub-scores ──
    filing_trend_score = Column(Integer, nullable=False, default=100)
    document_compliance_score = Column(Integer, nullable=False, default=100)
    itc_compliance_score = Column(Integer, nullable=False, default=100)

    # ── History ──
    previous_risk_score = Column(Integer, nullable=True)
    score_change_percentage = Column(Float, nullable=True)

    recommended_actions = Column(JSON, nullable=False, default=list)

    # ── Metadata ──
    last_assessed_at = Column(DateTime(timezone=True), nullable=False, index=True)
    assessed_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<ClientRisk {self.client_id} status={self.compliance_status} score={self.risk_score}>"
