"""Shared fixtures: in-memory stores standing in for PostgreSQL."""

import asyncio
import os
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Optional

import pytest

os.environ.setdefault("KAFKA_ENABLED", "false")
os.environ.setdefault("APP_ENV", "test")

from compliance_risk.schemas.assessment import ClientRiskAssessment, ComplianceStatus  # noqa: E402
from compliance_risk.schemas.compliance_rules import ComplianceRule  # noqa: E402
from compliance_risk.schemas.jobs import JobLogResponse, JobStatus, JobType  # noqa: E402
from compliance_risk.services.job_log import JobLogStore, JobRun  # noqa: E402
from compliance_risk.services.risk_store import ClientRiskStore  # noqa: E402
from compliance_risk.services.rule_store import ComplianceRuleStore, DuplicateRule, RuleNotFound  # noqa: E402


class InMemoryClientRiskStore(ClientRiskStore):

    def __init__(self):
        self.records: dict[str, ClientRiskAssessment] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.writes = 0

    @asynccontextmanager
    async def client_transaction(self, client_id: str):
        async with self._locks[client_id]:
            yield

    async def get(self, client_id: str) -> Optional[ClientRiskAssessment]:
        return self.records.get(client_id)

    async def list_records(self, status: Optional[ComplianceStatus] = None, limit: int = 50):
        records = [r for r in self.records.values() if status is None or r.compliance_status == status]
        records.sort(key=lambda r: (r.risk_score, r.last_assessed_at), reverse=True)
        return records[:limit]

    async def _write(self, record: ClientRiskAssessment) -> None:
        self.records[record.client_id] = record
        self.writes += 1


class InMemoryJobLogStore(JobLogStore):

    def __init__(self):
        self.jobs: dict[str, JobLogResponse] = {}
        self.saved_statuses: list[JobStatus] = []
        # Number of upcoming saves of a running job that raise
        self.fail_running_saves = 0

    async def save(self, job: JobRun) -> None:
        if job.status == JobStatus.RUNNING and self.fail_running_saves > 0:
            self.fail_running_saves -= 1
            raise ConnectionError("job_log table unavailable")
        self.jobs[job.job_id] = job.to_response()
        self.saved_statuses.append(job.status)

    async def get(self, job_id: str) -> Optional[JobLogResponse]:
        return self.jobs.get(job_id)

    async def list_jobs(
        self,
        job_type: Optional[JobType] = None,
        status: Optional[JobStatus] = None,
        limit: int = 50,
    ) -> list[JobLogResponse]:
        jobs = [
            j for j in self.jobs.values()
            if (job_type is None or j.job_type == job_type) and (status is None or j.status == status)
        ]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]


class InMemoryRuleStore(ComplianceRuleStore):

    def __init__(self):
        self.rules: dict[str, ComplianceRule] = {}

    async def list_rules(self, rule_type: Optional[str] = None) -> list[ComplianceRule]:
        return [
            self.rules[code] for code in sorted(self.rules)
            if rule_type is None or self.rules[code].rule_type == rule_type
        ]

    async def create(self, rule: ComplianceRule) -> ComplianceRule:
        if rule.rule_code in self.rules:
            raise DuplicateRule(f"Rule {rule.rule_code} already exists")
        self.rules[rule.rule_code] = rule
        return rule

    async def deactivate(self, rule_code: str, updated_by: Optional[str] = None) -> ComplianceRule:
        if rule_code not in self.rules:
            raise RuleNotFound(f"Rule {rule_code} not found")
        rule = self.rules[rule_code].model_copy(update={"is_active": False, "updated_by": updated_by})
        self.rules[rule_code] = rule
        return rule


@pytest.fixture
def risk_store() -> InMemoryClientRiskStore:
    return InMemoryClientRiskStore()


@pytest.fixture
def job_store() -> InMemoryJobLogStore:
    return InMemoryJobLogStore()


@pytest.fixture
def rule_store() -> InMemoryRuleStore:
    return InMemoryRuleStore()
