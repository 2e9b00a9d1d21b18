"""
Compliance rule persistence. Rows keep the common columns; type-specific
parameters round-trip through the tagged union so they are validated on
every read and write.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_risk.models.compliance_rule import ComplianceRuleRow
from compliance_risk.schemas.compliance_rules import (
    ComplianceRule,
    compliance_rule_adapter,
    rule_parameters,
)

logger = structlog.get_logger()


class RuleNotFound(LookupError):
    pass


class DuplicateRule(ValueError):
    pass


class ComplianceRuleStore(ABC):

    @abstractmethod
    async def list_rules(self, rule_type: Optional[str] = None) -> list[ComplianceRule]:
        ...

    @abstractmethod
    async def create(self, rule: ComplianceRule) -> ComplianceRule:
        """Raises DuplicateRule when the rule_code exists."""

    @abstractmethod
    async def deactivate(self, rule_code: str, updated_by: Optional[str] = None) -> ComplianceRule:
        """Raises RuleNotFound for an unknown rule_code."""


def row_to_rule(row: ComplianceRuleRow) -> ComplianceRule:
    return compliance_rule_adapter.validate_python({
        **(row.parameters or {}),
        "rule_type": row.rule_type,
        "rule_code": row.rule_code,
        "description": row.description,
        "is_active": row.is_active,
        "effective_from": row.effective_from,
        "effective_until": row.effective_until,
        "created_by": row.created_by,
        "updated_by": row.updated_by,
    })


class SqlComplianceRuleStore(ComplianceRuleStore):

    def __init__(self, db: AsyncSession):
        self._db = db

    async def list_rules(self, rule_type: Optional[str] = None) -> list[ComplianceRule]:
        stmt = select(ComplianceRuleRow).order_by(ComplianceRuleRow.rule_code)
        if rule_type is not None:
            stmt = stmt.where(ComplianceRuleRow.rule_type == rule_type)
        result = await self._db.execute(stmt)
        return [row_to_rule(row) for row in result.scalars()]

    async def create(self, rule: ComplianceRule) -> ComplianceRule:
        if await self._db.get(ComplianceRuleRow, rule.rule_code) is not None:
            raise DuplicateRule(f"Rule {rule.rule_code} already exists")
        row = ComplianceRuleRow(
            rule_code=rule.rule_code,
            rule_type=rule.rule_type,
            description=rule.description,
            parameters=rule_parameters(rule),
            is_active=rule.is_active,
            effective_from=rule.effective_from,
            effective_until=rule.effective_until,
            created_by=rule.created_by,
        )
        self._db.add(row)
        try:
            await self._db.commit()
        except IntegrityError as e:
            # A concurrent create of the same rule_code won the primary key
            await self._db.rollback()
            raise DuplicateRule(f"Rule {rule.rule_code} already exists") from e
        logger.info("compliance_rule_created", rule_code=rule.rule_code, rule_type=rule.rule_type)
        return row_to_rule(row)

    async def deactivate(self, rule_code: str, updated_by: Optional[str] = None) -> ComplianceRule:
        row = await self._db.get(ComplianceRuleRow, rule_code)
        if row is None:
            raise RuleNotFound(f"Rule {rule_code} not found")
        row.is_active = False
        row.updated_by = updated_by
        row.updated_at = datetime.now(timezone.utc)
        await self._db.commit()
        logger.info("compliance_rule_deactivated", rule_code=rule_code, updated_by=updated_by)
        return row_to_rule(row)
