"""
Unit tests for job log status transitions, counters and retry backoff.
"""
from datetime import datetime, timedelta, timezone

import pytest

from compliance_risk.schemas.jobs import JobStatus, JobType
from compliance_risk.services.job_log import InvalidJobTransition, JobRun

T0 = datetime(2026, 10, 1, 2, 0, tzinfo=timezone.utc)


def _make_job(**overrides) -> JobRun:
    kwargs = {
        "job_name": "Compliance Check",
        "job_type": JobType.COMPLIANCE_CHECK,
        "max_retries": 3,
        "retry_backoff_seconds": 60,
    }
    kwargs.update(overrides)
    return JobRun(**kwargs)


class TestTransitions:

    def test_new_job_is_queued(self):
        job = _make_job()
        assert job.status == JobStatus.QUEUED
        assert job.retry_count == 0

    def test_happy_path(self):
        job = _make_job()
        job.start(total=2, at=T0)
        job.record_success()
        job.record_success()
        job.complete(summary={"clients_checked": 2}, at=T0 + timedelta(seconds=3))

        assert job.status == JobStatus.COMPLETED
        assert job.duration_ms == 3000
        assert job.progress == 100
        assert job.summary == {"clients_checked": 2}

    def test_cannot_complete_queued_job(self):
        with pytest.raises(InvalidJobTransition):
            _make_job().complete()

    def test_completed_is_terminal(self):
        job = _make_job()
        job.start()
        job.complete()
        with pytest.raises(InvalidJobTransition):
            job.start()


class TestRetry:

    def test_failure_schedules_retry_with_backoff(self):
        job = _make_job()
        job.start(at=T0)
        job.fail(RuntimeError("job log unavailable"), at=T0)

        assert job.status == JobStatus.RETRYING
        assert job.retry_count == 1
        assert job.next_retry_at == T0 + timedelta(seconds=60)
        assert job.error == "job log unavailable"
        assert "RuntimeError" in job.error_stack

    def test_backoff_doubles(self):
        job = _make_job()
        delays = []
        for _ in range(3):
            job.start(at=T0)
            job.fail(RuntimeError("boom"), at=T0)
            delays.append((job.next_retry_at - T0).total_seconds())
        assert delays == [60, 120, 240]

    def test_exhausted_retries_fail(self):
        job = _make_job(max_retries=1)
        job.start(at=T0)
        job.fail(RuntimeError("boom"), at=T0)
        job.start(at=T0)
        job.fail(RuntimeError("boom again"), at=T0)

        assert job.status == JobStatus.FAILED
        assert job.retry_count == 1
        assert job.next_retry_at is None

    def test_no_retries_configured(self):
        job = _make_job(max_retries=0)
        job.start()
        job.fail(RuntimeError("boom"))
        assert job.status == JobStatus.FAILED

    def test_restart_resets_counters(self):
        job = _make_job()
        job.start(total=3)
        job.record_failure("GSTIN-A", ValueError("bad"))
        job.fail(RuntimeError("boom"))
        job.start(total=3)

        assert job.processed == job.failed == 0
        assert job.error is None
        assert job.error_details is None


class TestCounters:

    def test_failure_recorded_per_item(self):
        job = _make_job()
        job.start(total=4)
        job.record_success()
        job.record_failure("GSTIN-B", ValueError("bad factors"))

        assert job.processed == 2
        assert job.failed == 1
        assert job.error == "GSTIN-B: bad factors"
        assert job.error_details == {"failures": {"GSTIN-B": "ValueError: bad factors"}}
        assert job.progress == 50
        assert job.progress_message == "2/4 processed"

    def test_skip_recorded(self):
        job = _make_job()
        job.start(total=1)
        job.record_skip("GSTIN-C", "duplicate client in batch")
        assert job.skipped == 1
        assert job.error_details["skipped"] == {"GSTIN-C": "duplicate client in batch"}

    def test_to_response(self):
        job = _make_job(client_id="GSTIN-D")
        response = job.to_response()
        assert response.job_id == job.job_id
        assert response.status == JobStatus.QUEUED
        assert response.client_id == "GSTIN-D"

    def test_only_service_job_types_accepted(self):
        assert {t.value for t in JobType} == {"compliance_check", "custom"}
        with pytest.raises(ValueError):
            JobType("itc_sync")
