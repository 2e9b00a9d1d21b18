"""
Assessment outputs — sub-scores, classification, trend and the full
client risk record that gets upserted per client.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from compliance_risk.schemas.risk_factors import RiskFactorSet


class ComplianceStatus(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


class RiskFlags(BaseModel):
    model_config = ConfigDict(frozen=True)

    has_overdue_filing: bool = False
    has_unresolved_itc_mismatch: bool = False
    has_missing_documents: bool = False
    has_recurrent_issues: bool = False


class ScoreBreakdown(BaseModel):
    """Output of the score calculator. All values are integers in [0, 100]."""
    model_config = ConfigDict(frozen=True)

    risk_score: int = Field(ge=0, le=100, description="Higher = worse compliance")
    filing_trend_score: int = Field(ge=0, le=100)
    document_compliance_score: int = Field(ge=0, le=100)
    itc_compliance_score: int = Field(ge=0, le=100)


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    compliance_status: ComplianceStatus
    recommended_actions: list[str] = []


class TrendResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    previous_risk_score: Optional[int] = None
    score_change_percentage: Optional[float] = None


class ClientRiskAssessment(BaseModel):
    """
    The persisted shape — one per client, mutated in place each assessment.
    Also the response body of the assessment and lookup endpoints.
    """
    client_id: str
    risk_score: int = Field(ge=0, le=100)
    compliance_status: ComplianceStatus
    factors: RiskFactorSet
    flags: RiskFlags

    # ── Sub-scores ──
    filing_trend_score: int = Field(ge=0, le=100)
    document_compliance_score: int = Field(ge=0, le=100)
    itc_compliance_score: int = Field(ge=0, le=100)

    # ── History ──
    previous_risk_score: Optional[int] = None
    score_change_percentage: Optional[float] = None

    recommended_actions: list[str] = []

    # ── Metadata ──
    model_version: str
    last_assessed_at: datetime
    assessed_by: Optional[str] = None


class AssessmentRequest(BaseModel):
    """POST /v1/compliance/assess"""
    client_id: str = Field(min_length=1, description="GST client identifier")
    factors: RiskFactorSet
