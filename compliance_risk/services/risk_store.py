"""
Client risk persistence — upsert-by-client with per-client serialization.

Read-modify-write of one client's record (read previous → assess → upsert)
must run inside `client_transaction(client_id)`, so two concurrent
assessments of the same client cannot both capture the same previous score.
Different clients never block each other.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import select, text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_risk.models.client_risk import ClientRisk
from compliance_risk.schemas.assessment import (
    ClientRiskAssessment,
    ComplianceStatus,
    RiskFlags,
)
from compliance_risk.schemas.risk_factors import RiskFactorSet
from compliance_risk.scoring.calculator import compute_risk_score
from compliance_risk.scoring.classifier import derive_flags, is_status_consistent, overdue_override_applies
from compliance_risk.scoring.policy import DEFAULT_POLICY, ScoringPolicy

logger = structlog.get_logger()

FACTOR_COLUMNS = tuple(RiskFactorSet.model_fields)
FLAG_COLUMNS = tuple(RiskFlags.model_fields)


class InconsistentRiskRecord(ValueError):
    """A record whose status or score breaks the scoring invariants."""


def validate_record(record: ClientRiskAssessment, policy: ScoringPolicy = DEFAULT_POLICY) -> None:
    """
    Rejects writes that bypassed the engine. Scores and count-based flags are
    recomputed from `record.factors`; the status must be the one the
    thresholds and the overdue-filing override give for that score.
    """
    expected = compute_risk_score(record.factors, policy=policy)
    for field, value in expected.model_dump().items():
        if getattr(record, field) != value:
            raise InconsistentRiskRecord(
                f"{field} {getattr(record, field)} for client {record.client_id} does not match "
                f"its risk factors (expected {value})"
            )

    derived = derive_flags(record.factors, has_recurrent_issues=record.flags.has_recurrent_issues)
    if record.flags != derived:
        raise InconsistentRiskRecord(f"flags for client {record.client_id} do not match its risk factors")

    override = overdue_override_applies(record.flags, record.factors.overdue_filings_count, policy)
    if not is_status_consistent(record.risk_score, record.compliance_status, override, policy):
        raise InconsistentRiskRecord(
            f"compliance_status '{record.compliance_status.value}' is inconsistent with "
            f"risk_score {record.risk_score} for client {record.client_id}"
        )


class ClientRiskStore(ABC):

    @abstractmethod
    def client_transaction(self, client_id: str):
        """Async context manager serializing work on one client."""

    @abstractmethod
    async def get(self, client_id: str) -> Optional[ClientRiskAssessment]:
        ...

    @abstractmethod
    async def list_records(
        self,
        status: Optional[ComplianceStatus] = None,
        limit: int = 50,
    ) -> list[ClientRiskAssessment]:
        """Highest risk first."""

    @abstractmethod
    async def _write(self, record: ClientRiskAssessment) -> None:
        ...

    async def upsert(self, record: ClientRiskAssessment, policy: ScoringPolicy = DEFAULT_POLICY) -> None:
        validate_record(record, policy)
        await self._write(record)


# ═══════════════════════════════════════════════════════════════
# Row ↔ record mapping
# ═══════════════════════════════════════════════════════════════

def record_to_values(record: ClientRiskAssessment) -> dict:
    values = {
        "client_id": record.client_id,
        "risk_score": record.risk_score,
        "compliance_status": record.compliance_status.value,
        "model_version": record.model_version,
        "filing_trend_score": record.filing_trend_score,
        "document_compliance_score": record.document_compliance_score,
        "itc_compliance_score": record.itc_compliance_score,
        "previous_risk_score": record.previous_risk_score,
        "score_change_percentage": record.score_change_percentage,
        "recommended_actions": list(record.recommended_actions),
        "last_assessed_at": record.last_assessed_at,
        "assessed_by": record.assessed_by,
    }
    values.update(record.factors.model_dump())
    values.update(record.flags.model_dump())
    return values


def row_to_record(row: ClientRisk) -> ClientRiskAssessment:
    return ClientRiskAssessment(
        client_id=row.client_id,
        risk_score=row.risk_score,
        compliance_status=ComplianceStatus(row.compliance_status),
        factors=RiskFactorSet(**{c: getattr(row, c) for c in FACTOR_COLUMNS}),
        flags=RiskFlags(**{c: getattr(row, c) for c in FLAG_COLUMNS}),
        filing_trend_score=row.filing_trend_score,
        document_compliance_score=row.document_compliance_score,
        itc_compliance_score=row.itc_compliance_score,
        previous_risk_score=row.previous_risk_score,
        score_change_percentage=row.score_change_percentage,
        recommended_actions=list(row.recommended_actions or []),
        model_version=row.model_version,
        last_assessed_at=row.last_assessed_at,
        assessed_by=row.assessed_by,
    )


# ═══════════════════════════════════════════════════════════════
# PostgreSQL implementation
# ═══════════════════════════════════════════════════════════════

class SqlClientRiskStore(ClientRiskStore):

    def __init__(self, db: AsyncSession):
        self._db = db

    @asynccontextmanager
    async def client_transaction(self, client_id: str) -> AsyncIterator[None]:
        # Transaction-scoped advisory lock: released on commit/rollback
        try:
            await self._db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:cid))"),
                {"cid": client_id},
            )
            yield
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise

    async def get(self, client_id: str) -> Optional[ClientRiskAssessment]:
        stmt = (
            select(ClientRisk)
            .where(ClientRisk.client_id == client_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._db.execute(stmt)).scalar_one_or_none()
        return row_to_record(row) if row else None

    async def list_records(
        self,
        status: Optional[ComplianceStatus] = None,
        limit: int = 50,
    ) -> list[ClientRiskAssessment]:
        stmt = select(ClientRisk).order_by(
            ClientRisk.risk_score.desc(),
            ClientRisk.last_assessed_at.desc(),
        ).limit(limit)
        if status is not None:
            stmt = stmt.where(ClientRisk.compliance_status == status.value)
        result = await self._db.execute(stmt)
        return [row_to_record(row) for row in result.scalars()]

    async def _write(self, record: ClientRiskAssessment) -> None:
        values = record_to_values(record)
        now = datetime.now(timezone.utc)
        stmt = insert(ClientRisk).values(**values, created_at=now, updated_at=now)
        update_cols = {k: stmt.excluded[k] for k in values if k != "client_id"}
        update_cols["updated_at"] = now
        await self._db.execute(
            stmt.on_conflict_do_update(index_elements=[ClientRisk.client_id], set_=update_cols)
        )
        logger.debug("client_risk_upserted", client_id=record.client_id, risk_score=record.risk_score)
