"""
002 — Seed default GST compliance rules

  GSTR1_DUE_11TH     GSTR-1 due on the 11th of the following month
  GSTR3B_DUE_20TH    GSTR-3B due on the 20th of the following month
  LATE_FEE_GSTR3B    ₹50/day (CGST + SGST), capped at ₹10,000
  INTEREST_18PA      18% p.a. simple interest on unpaid tax from the due date
  QRMP_THRESHOLD     Quarterly filing available below ₹5 crore turnover

Revision ID: 002
Create Date: 2026-10-18
"""
from datetime import datetime, timezone

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSON

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

SCHEMA = "gst_compliance"

EFFECTIVE_FROM = datetime(2026, 4, 1, tzinfo=timezone.utc)

RULES = [
    {
        "rule_code": "GSTR1_DUE_11TH",
        "rule_type": "gst_due_date",
        "description": "GSTR-1 is due on the 11th of the month following the tax period",
        "parameters": {"due_day": 11, "due_hour": 23, "applicable_to": ["monthly"], "form_types": ["gstr1"]},
    },
    {
        "rule_code": "GSTR3B_DUE_20TH",
        "rule_type": "gst_due_date",
        "description": "GSTR-3B is due on the 20th of the month following the tax period",
        "parameters": {"due_day": 20, "due_hour": 23, "applicable_to": ["monthly"], "form_types": ["gstr3b"]},
    },
    {
        "rule_code": "LATE_FEE_GSTR3B",
        "rule_type": "late_fee",
        "description": "Late fee for delayed GSTR-3B: ₹50 per day, capped at ₹10,000",
        "parameters": {
            "late_fee_base": 0.0,
            "late_fee_per_day": 50.0,
            "late_fee_max_days": None,
            "late_fee_max": 10000.0,
        },
    },
    {
        "rule_code": "INTEREST_18PA",
        "rule_type": "interest",
        "description": "Interest at 18% per annum on tax paid after the due date",
        "parameters": {"interest_rate": 18.0, "interest_applied_from": "due_date"},
    },
    {
        "rule_code": "QRMP_THRESHOLD",
        "rule_type": "filing_requirement",
        "description": "Quarterly return filing (QRMP) for turnover up to ₹5 crore",
        "parameters": {
            "minimum_turnover": None,
            "filing_frequency": "quarterly",
            "exemption_criteria": "Aggregate turnover above ₹5 crore files monthly",
        },
    },
]


def upgrade() -> None:
    table = sa.table(
        "compliance_rule",
        sa.column("rule_code", sa.String),
        sa.column("rule_type", sa.String),
        sa.column("description", sa.Text),
        sa.column("parameters", JSON),
        sa.column("is_active", sa.Boolean),
        sa.column("effective_from", sa.DateTime(timezone=True)),
        sa.column("created_by", sa.String),
        schema=SCHEMA,
    )
    op.bulk_insert(table, [
        {**rule, "is_active": True, "effective_from": EFFECTIVE_FROM, "created_by": "migration-002"}
        for rule in RULES
    ])


def downgrade() -> None:
    codes = ", ".join(f"'{r['rule_code']}'" for r in RULES)
    op.execute(f"DELETE FROM {SCHEMA}.compliance_rule WHERE rule_code IN ({codes})")
