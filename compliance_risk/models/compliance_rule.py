"""
Configurable GST rules (due dates, late fees, interest, filing requirements).
Schema: gst_compliance.compliance_rule

Type-specific parameters live in a JSON column and are validated through
the tagged union in schemas/compliance_rules.py on the way in and out.
"""
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, JSON, Text, Index

from compliance_risk.models.client_risk import Base, SCHEMA


class ComplianceRuleRow(Base):
    __tablename__ = "compliance_rule"
    __table_args__ = (
        Index("ix_compliance_rule_type_active", "rule_type", "is_active"),
        Index("ix_compliance_rule_effective", "effective_from", "effective_until"),
        {"schema": SCHEMA},
    )

    rule_code = Column(String(64), primary_key=True)
    rule_type = Column(String(30), nullable=False, index=True)
    description = Column(Text, nullable=False)
    parameters = Column(JSON, nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)
    effective_from = Column(DateTime(timezone=True), nullable=False)
    effective_until = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(String(100), nullable=True)
    updated_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<ComplianceRule {self.rule_code} type={self.rule_type} active={self.is_active}>"
