from prometheus_client import Counter, Histogram


class ComplianceMetrics:
    """Prometheus metrics for the compliance risk engine"""

    assessments_total = Counter(
        "compliance_assessments_total",
        "Client risk assessments computed",
        ["compliance_status"],
    )

    assessment_duration_seconds = Histogram(
        "compliance_assessment_duration_seconds",
        "Time spent computing a single client assessment",
    )

    factor_clamps_total = Counter(
        "compliance_factor_clamps_total",
        "Out-of-range risk factor values clamped by the calculator",
        ["field"],
    )

    batch_client_failures_total = Counter(
        "compliance_batch_client_failures_total",
        "Clients whose assessment failed inside a batch job",
    )

    jobs_total = Counter(
        "compliance_jobs_total",
        "Batch jobs by final status",
        ["job_type", "status"],
    )
