"""
Request-scoped dependencies: stores bound to the request's DB session and
the scoring policy built from settings.
"""
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_risk.core.config import Settings, get_settings
from compliance_risk.models.database import get_db
from compliance_risk.scoring.policy import ScoringPolicy
from compliance_risk.services.job_log import JobLogStore, SqlJobLogStore
from compliance_risk.services.risk_store import ClientRiskStore, SqlClientRiskStore
from compliance_risk.services.rule_store import ComplianceRuleStore, SqlComplianceRuleStore


def get_policy(settings: Settings = Depends(get_settings)) -> ScoringPolicy:
    return ScoringPolicy.from_settings(settings)


def get_risk_store(db: AsyncSession = Depends(get_db)) -> ClientRiskStore:
    return SqlClientRiskStore(db)


def get_job_store(db: AsyncSession = Depends(get_db)) -> JobLogStore:
    return SqlJobLogStore(db)


def get_rule_store(db: AsyncSession = Depends(get_db)) -> ComplianceRuleStore:
    return SqlComplianceRuleStore(db)
