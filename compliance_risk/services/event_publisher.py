"""
Kafka event publisher — fire-and-forget.

Publishes one event per stored client assessment for downstream consumers
(admin dashboards, notification service, data warehouse sync).
Gracefully degrades if Kafka is unavailable.
"""
from __future__ import annotations

import json
import structlog
from compliance_risk.core.config import get_settings
from compliance_risk.schemas.assessment import ClientRiskAssessment

logger = structlog.get_logger()

_producer = None


async def _get_producer():
    global _producer
    settings = get_settings()
    if not settings.kafka_enabled:
        return None
    if _producer is None:
        from aiokafka import AIOKafkaProducer
        _producer = AIOKafkaProducer(bootstrap_servers=settings.kafka_bootstrap)
        await _producer.start()
    return _producer


def build_risk_event(record: ClientRiskAssessment) -> dict:
    return {
        "event_type": "CLIENT_RISK_ASSESSED",
        "client_id": record.client_id,
        "risk_score": record.risk_score,
        "compliance_status": record.compliance_status.value,
        "previous_risk_score": record.previous_risk_score,
        "score_change_percentage": record.score_change_percentage,
        "has_recurrent_issues": record.flags.has_recurrent_issues,
        "model_version": record.model_version,
        "assessed_at": record.last_assessed_at.isoformat(),
    }


async def publish_risk_event(record: ClientRiskAssessment) -> None:
    settings = get_settings()
    if not settings.kafka_enabled:
        return

    try:
        producer = await _get_producer()
        if producer:
            await producer.send_and_wait(
                settings.kafka_topic_risk_events,
                json.dumps(build_risk_event(record)).encode("utf-8"),
                key=record.client_id.encode("utf-8"),
            )
            logger.info("kafka_event_published", client_id=record.client_id)
    except Exception as e:
        # Fire-and-forget: log but don't fail the assessment
        logger.warning("kafka_publish_failed", client_id=record.client_id, error=str(e))


async def close_producer() -> None:
    global _producer
    if _producer is not None:
        await _producer.stop()
        _producer = None
