"""
Job log — one row per background job run (audit trail + debugging).
Schema: gst_compliance.job_log
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, Text, Index

from compliance_risk.models.client_risk import Base, SCHEMA


class JobLog(Base):
    __tablename__ = "job_log"
    __table_args__ = (
        Index("ix_job_log_type_status", "job_type", "status"),
        Index("ix_job_log_next_retry", "next_retry_at", "status"),
        {"schema": SCHEMA},
    )

    job_id = Column(String(36), primary_key=True)
    job_name = Column(String(100), nullable=False, index=True)
    job_type = Column(String(30), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="queued", index=True)
    client_id = Column(String(64), nullable=True, index=True)

    # ── Execution ──
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)

    # ── Results ──
    processed = Column(Integer, nullable=False, default=0)
    successful = Column(Integer, nullable=False, default=0)
    failed = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)

    # ── Errors ──
    error = Column(Text, nullable=True)
    error_stack = Column(Text, nullable=True)
    error_details = Column(JSON, nullable=True)

    # ── Retry ──
    retry_count = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=3)
    next_retry_at = Column(DateTime(timezone=True), nullable=True)

    # ── Progress / scheduling ──
    progress = Column(Integer, nullable=False, default=0)
    progress_message = Column(String(255), nullable=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=True)
    triggered_by = Column(String(20), nullable=False, default="schedule")

    summary = Column(JSON, nullable=True)
    # "metadata" is reserved on declarative classes
    job_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<JobLog {self.job_id} {self.job_type} status={self.status}>"
