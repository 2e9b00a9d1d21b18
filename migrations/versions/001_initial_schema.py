"""
001 — Initial schema: client_risk, job_log, compliance_rule

Revision ID: 001
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSON

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA = "gst_compliance"


def upgrade() -> None:
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    # ══════════════════════════════════════════════════════════════
    # 1. CLIENT RISK: one row per client, upserted each assessment
    # ══════════════════════════════════════════════════════════════
    op.create_table(
        "client_risk",
        sa.Column("client_id", sa.String(64), primary_key=True),

        sa.Column("risk_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("compliance_status", sa.String(10), nullable=False, server_default="good"),
        sa.Column("model_version", sa.String(10), nullable=False),

        sa.Column("overdue_days_avg", sa.Float, nullable=False, server_default="0"),
        sa.Column("overdue_filings_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("filing_accuracy", sa.Float, nullable=False, server_default="100"),
        sa.Column("incomplete_docs_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("itc_claim_accuracy", sa.Float, nullable=False, server_default="100"),
        sa.Column("itc_mismatch_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("amendment_rate", sa.Float, nullable=False, server_default="0"),

        sa.Column("has_overdue_filing", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("has_unresolved_itc_mismatch", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("has_missing_documents", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("has_recurrent_issues", sa.Boolean, nullable=False, server_default=sa.false()),

        sa.Column("filing_trend_score", sa.Integer, nullable=False, server_default="100"),
        sa.Column("document_compliance_score", sa.Integer, nullable=False, server_default="100"),
        sa.Column("itc_compliance_score", sa.Integer, nullable=False, server_default="100"),

        sa.Column("previous_risk_score", sa.Integer, nullable=True),
        sa.Column("score_change_percentage", sa.Float, nullable=True),
        sa.Column("recommended_actions", JSON, nullable=False),

        sa.Column("last_assessed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assessed_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),

        sa.CheckConstraint("risk_score BETWEEN 0 AND 100", name="ck_client_risk_score_range"),
        sa.CheckConstraint(
            "compliance_status IN ('good', 'warning', 'critical')",
            name="ck_client_risk_status",
        ),
        schema=SCHEMA,
    )
    op.create_index("ix_client_risk_risk_score", "client_risk", ["risk_score"], schema=SCHEMA)
    op.create_index("ix_client_risk_compliance_status", "client_risk", ["compliance_status"], schema=SCHEMA)
    op.create_index("ix_client_risk_has_overdue_filing", "client_risk", ["has_overdue_filing"], schema=SCHEMA)
    op.create_index("ix_client_risk_last_assessed_at", "client_risk", ["last_assessed_at"], schema=SCHEMA)
    op.create_index(
        "ix_client_risk_status_score", "client_risk", ["compliance_status", "risk_score"], schema=SCHEMA,
    )

    # ══════════════════════════════════════════════════════════════
    # 2. JOB LOG: one row per background job run
    # ══════════════════════════════════════════════════════════════
    op.create_table(
        "job_log",
        sa.Column("job_id", sa.String(36), primary_key=True),
        sa.Column("job_name", sa.String(100), nullable=False),
        sa.Column("job_type", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="queued"),
        sa.Column("client_id", sa.String(64), nullable=True),

        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer, nullable=True),

        sa.Column("processed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("successful", sa.Integer, nullable=False, server_default="0"),
        sa.Column("failed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("skipped", sa.Integer, nullable=False, server_default="0"),

        sa.Column("error", sa.Text, nullable=True),
        sa.Column("error_stack", sa.Text, nullable=True),
        sa.Column("error_details", JSON, nullable=True),

        sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer, nullable=False, server_default="3"),
        sa.Column("next_retry_at", sa.DateTime(timezone=True), nullable=True),

        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("progress_message", sa.String(255), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("triggered_by", sa.String(20), nullable=False, server_default="schedule"),

        sa.Column("summary", JSON, nullable=True),
        sa.Column("metadata", JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema=SCHEMA,
    )
    op.create_index("ix_job_log_job_name", "job_log", ["job_name"], schema=SCHEMA)
    op.create_index("ix_job_log_job_type", "job_log", ["job_type"], schema=SCHEMA)
    op.create_index("ix_job_log_status", "job_log", ["status"], schema=SCHEMA)
    op.create_index("ix_job_log_client_id", "job_log", ["client_id"], schema=SCHEMA)
    op.create_index("ix_job_log_created_at", "job_log", ["created_at"], schema=SCHEMA)
    op.create_index("ix_job_log_type_status", "job_log", ["job_type", "status"], schema=SCHEMA)
    op.create_index("ix_job_log_next_retry", "job_log", ["next_retry_at", "status"], schema=SCHEMA)

    # ══════════════════════════════════════════════════════════════
    # 3. COMPLIANCE RULE: typed parameters stored as JSON
    # ══════════════════════════════════════════════════════════════
    op.create_table(
        "compliance_rule",
        sa.Column("rule_code", sa.String(64), primary_key=True),
        sa.Column("rule_type", sa.String(30), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("parameters", JSON, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("effective_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("effective_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=True),
        sa.Column("updated_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "rule_type IN ('gst_due_date', 'late_fee', 'interest', 'filing_requirement')",
            name="ck_compliance_rule_type",
        ),
        schema=SCHEMA,
    )
    op.create_index("ix_compliance_rule_rule_type", "compliance_rule", ["rule_type"], schema=SCHEMA)
    op.create_index(
        "ix_compliance_rule_type_active", "compliance_rule", ["rule_type", "is_active"], schema=SCHEMA,
    )
    op.create_index(
        "ix_compliance_rule_effective", "compliance_rule", ["effective_from", "effective_until"], schema=SCHEMA,
    )


def downgrade() -> None:
    op.drop_table("compliance_rule", schema=SCHEMA)
    op.drop_table("job_log", schema=SCHEMA)
    op.drop_table("client_risk", schema=SCHEMA)
