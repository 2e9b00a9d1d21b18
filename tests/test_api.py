"""
API tests — FastAPI TestClient with the DB-backed stores and the token
check swapped out through dependency_overrides.
"""
import pytest
from fastapi.testclient import TestClient

from compliance_risk.api.dependencies import get_job_store, get_risk_store, get_rule_store
from compliance_risk.core.auth import verify_token
from compliance_risk.core.config import Settings, get_settings
from compliance_risk.main import app

ADMIN = {"sub": "ops@example.com", "roles": ["compliance-admin"]}
VIEWER = {"sub": "viewer@example.com", "realm_access": {"roles": ["compliance-viewer"]}}

STRUGGLING = {
    "overdue_days_avg": 20,
    "overdue_filings_count": 4,
    "filing_accuracy": 80,
    "incomplete_docs_count": 2,
    "itc_claim_accuracy": 90,
    "itc_mismatch_count": 3,
    "amendment_rate": 10,
}


@pytest.fixture
def client(risk_store, job_store, rule_store):
    app.dependency_overrides[verify_token] = lambda: ADMIN
    app.dependency_overrides[get_risk_store] = lambda: risk_store
    app.dependency_overrides[get_job_store] = lambda: job_store
    app.dependency_overrides[get_rule_store] = lambda: rule_store
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAssessEndpoint:

    def test_assess_and_fetch(self, client):
        resp = client.post("/v1/compliance/assess", json={"client_id": "GSTIN-A", "factors": STRUGGLING})

        assert resp.status_code == 200
        body = resp.json()
        assert body["risk_score"] == 26
        assert body["compliance_status"] == "warning"
        assert body["assessed_by"] == "ops@example.com"
        assert len(body["recommended_actions"]) == 3

        stored = client.get("/v1/compliance/clients/GSTIN-A")
        assert stored.status_code == 200
        assert stored.json()["risk_score"] == 26

    def test_reassessment_reports_trend(self, client):
        client.post("/v1/compliance/assess", json={"client_id": "GSTIN-A", "factors": STRUGGLING})
        resp = client.post("/v1/compliance/assess", json={"client_id": "GSTIN-A", "factors": {}})

        body = resp.json()
        assert body["previous_risk_score"] == 26
        assert body["score_change_percentage"] == -100.0

    def test_assessment_logged_as_job(self, client, job_store):
        client.post("/v1/compliance/assess", json={"client_id": "GSTIN-A", "factors": STRUGGLING})

        jobs = client.get("/v1/admin/jobs").json()
        assert len(jobs) == 1
        assert jobs[0]["job_type"] == "compliance_check"
        assert jobs[0]["client_id"] == "GSTIN-A"
        assert jobs[0]["status"] == "completed"
        assert jobs[0]["processed"] == 1
        assert jobs[0]["successful"] == 1
        assert jobs[0]["triggered_by"] == "api"
        assert len(job_store.jobs) == 1

    def test_non_finite_factor_rejected(self, client):
        resp = client.post(
            "/v1/compliance/assess",
            content='{"client_id": "GSTIN-A", "factors": {"filing_accuracy": NaN}}',
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 422

    def test_empty_client_id_rejected(self, client):
        resp = client.post("/v1/compliance/assess", json={"client_id": "", "factors": {}})
        assert resp.status_code == 422

    def test_unknown_client_404(self, client):
        assert client.get("/v1/compliance/clients/GSTIN-NONE").status_code == 404

    def test_list_filtered_by_status(self, client):
        client.post("/v1/compliance/assess", json={"client_id": "GSTIN-A", "factors": {}})
        client.post("/v1/compliance/assess", json={"client_id": "GSTIN-B", "factors": STRUGGLING})

        resp = client.get("/v1/compliance/clients", params={"status": "warning"})
        assert [r["client_id"] for r in resp.json()] == ["GSTIN-B"]

        everyone = client.get("/v1/compliance/clients").json()
        assert [r["client_id"] for r in everyone] == ["GSTIN-B", "GSTIN-A"]

    def test_health(self, client):
        resp = client.get("/v1/compliance/health")
        assert resp.json()["status"] == "ok"


class TestAdminEndpoints:

    def test_batch_compliance_check(self, client, risk_store):
        resp = client.post("/v1/admin/compliance-check", json={
            "items": [
                {"client_id": "GSTIN-A", "factors": {}},
                {"client_id": "GSTIN-B", "factors": STRUGGLING},
            ],
        })

        assert resp.status_code == 200
        job = resp.json()
        assert job["status"] == "completed"
        assert job["job_type"] == "compliance_check"
        assert job["triggered_by"] == "manual"
        assert job["successful"] == 2
        assert set(risk_store.records) == {"GSTIN-A", "GSTIN-B"}

        fetched = client.get(f"/v1/admin/jobs/{job['job_id']}")
        assert fetched.json()["summary"]["clients_checked"] == 2
        assert len(client.get("/v1/admin/jobs").json()) == 1

    def test_batch_retried_after_job_log_outage(self, client, job_store):
        app.dependency_overrides[get_settings] = lambda: Settings(job_retry_backoff_seconds=0)
        job_store.fail_running_saves = 1

        resp = client.post("/v1/admin/compliance-check", json={
            "items": [{"client_id": "GSTIN-A", "factors": {}}],
        })

        assert resp.status_code == 200
        job = resp.json()
        assert job["status"] == "completed"
        assert job["retry_count"] == 1
        assert job["successful"] == 1

    def test_empty_batch_rejected(self, client):
        assert client.post("/v1/admin/compliance-check", json={"items": []}).status_code == 422

    def test_unknown_job_404(self, client):
        assert client.get("/v1/admin/jobs/nope").status_code == 404

    def test_policy(self, client):
        policy = client.get("/v1/admin/policy").json()
        assert policy["threshold_warning"] == 30
        assert policy["weight_filing_trend"] == 0.4

    def test_non_admin_forbidden(self, client):
        app.dependency_overrides[verify_token] = lambda: VIEWER
        assert client.get("/v1/admin/policy").status_code == 403


class TestRuleEndpoints:

    LATE_FEE = {
        "rule_type": "late_fee",
        "rule_code": "LATE_FEE_GSTR3B",
        "description": "₹50 per day, capped at ₹10,000",
        "effective_from": "2026-04-01T00:00:00Z",
        "late_fee_per_day": 50,
        "late_fee_max": 10000,
    }

    def test_create_and_list(self, client):
        resp = client.post("/v1/admin/rules", json=self.LATE_FEE)

        assert resp.status_code == 201
        assert resp.json()["created_by"] == "ops@example.com"

        rules = client.get("/v1/admin/rules", params={"rule_type": "late_fee"}).json()
        assert [r["rule_code"] for r in rules] == ["LATE_FEE_GSTR3B"]
        assert client.get("/v1/admin/rules", params={"rule_type": "interest"}).json() == []

    def test_duplicate_rule_409(self, client):
        client.post("/v1/admin/rules", json=self.LATE_FEE)
        assert client.post("/v1/admin/rules", json=self.LATE_FEE).status_code == 409

    def test_invalid_variant_422(self, client):
        body = {**self.LATE_FEE, "rule_type": "gst_due_date"}
        assert client.post("/v1/admin/rules", json=body).status_code == 422

    def test_deactivate(self, client):
        client.post("/v1/admin/rules", json=self.LATE_FEE)

        resp = client.post("/v1/admin/rules/LATE_FEE_GSTR3B/deactivate")
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False

        effective = client.get("/v1/admin/rules", params={"effective_at": "2026-10-01T00:00:00Z"}).json()
        assert effective == []

    def test_deactivate_unknown_404(self, client):
        assert client.post("/v1/admin/rules/NOPE/deactivate").status_code == 404
