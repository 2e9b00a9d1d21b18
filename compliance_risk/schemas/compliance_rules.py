"""
Configurable GST compliance rules — due dates, late fees, interest and
filing requirements.

Each rule type carries its own typed parameters; `ComplianceRule` is a
tagged union discriminated on `rule_type`, so a late-fee rule can never
be stored with due-date parameters.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, RootModel, TypeAdapter, field_validator, model_validator


class FilingFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class FormType(str, Enum):
    GSTR1 = "gstr1"
    GSTR3B = "gstr3b"
    GSTR2A = "gstr2a"
    GSTR2B = "gstr2b"


class RuleBase(BaseModel):
    rule_code: str = Field(min_length=1, max_length=64, description="e.g. GSTR3B_DUE_20TH")
    description: str
    is_active: bool = True
    effective_from: datetime
    effective_until: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None

    @field_validator("effective_from", "effective_until")
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def _check_window(self):
        if self.effective_until is not None and self.effective_until <= self.effective_from:
            raise ValueError("effective_until must be after effective_from")
        return self


class GstDueDateRule(RuleBase):
    rule_type: Literal["gst_due_date"] = "gst_due_date"
    due_day: int = Field(ge=1, le=31, description="Day of the month after the period")
    due_hour: int = Field(23, ge=0, le=23)
    applicable_to: list[FilingFrequency] = [FilingFrequency.MONTHLY]
    form_types: list[FormType] = []


class LateFeeRule(RuleBase):
    rule_type: Literal["late_fee"] = "late_fee"
    late_fee_base: float = Field(0.0, ge=0, description="Flat fee once a filing is late (INR)")
    late_fee_per_day: float = Field(ge=0, description="Fee per day of delay (INR)")
    late_fee_max_days: Optional[int] = Field(None, ge=0, description="Days after which no further fee accrues")
    late_fee_max: Optional[float] = Field(None, ge=0, description="Cap on the total late fee (INR)")


class InterestRule(RuleBase):
    rule_type: Literal["interest"] = "interest"
    interest_rate: float = Field(ge=0, description="Simple interest, % per annum")
    interest_applied_from: Literal["due_date", "filing_date"] = "due_date"


class FilingRequirementRule(RuleBase):
    rule_type: Literal["filing_requirement"] = "filing_requirement"
    minimum_turnover: Optional[float] = Field(None, ge=0, description="Annual turnover threshold (INR)")
    filing_frequency: FilingFrequency
    exemption_criteria: Optional[str] = None


ComplianceRule = Annotated[
    Union[GstDueDateRule, LateFeeRule, InterestRule, FilingRequirementRule],
    Field(discriminator="rule_type"),
]

RuleType = Literal["gst_due_date", "late_fee", "interest", "filing_requirement"]

compliance_rule_adapter: TypeAdapter[ComplianceRule] = TypeAdapter(ComplianceRule)


class ComplianceRuleDocument(RootModel[ComplianceRule]):
    """Request / response body wrapping the tagged union."""


# Columns stored outside the JSON parameters blob
RULE_COMMON_FIELDS = frozenset(RuleBase.model_fields) | {"rule_type"}


def rule_parameters(rule: RuleBase) -> dict:
    """Type-specific parameters only, JSON-ready."""
    return rule.model_dump(mode="json", exclude=set(RULE_COMMON_FIELDS))
