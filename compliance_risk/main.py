"""
GST Compliance Risk Engine — service entry point

  POST /v1/compliance/assess          score one client, upsert its record
  GET  /v1/compliance/clients[/{id}]  stored records, highest risk first
  POST /v1/admin/compliance-check     batch assessment job
  GET  /v1/admin/jobs, /rules, /policy
  GET  /metrics                       Prometheus scrape
  GET  /docs                          OpenAPI / Swagger UI

Run: uvicorn compliance_risk.main:app
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from compliance_risk.api.admin_endpoint import router as admin_router
from compliance_risk.api.risk_endpoint import router as risk_router
from compliance_risk.core.config import Settings, get_settings
from compliance_risk.scoring.engine import MODEL_VERSION
from compliance_risk.scoring.policy import ScoringPolicy
from compliance_risk.services.event_publisher import close_producer

SERVICE_VERSION = "1.0.0"


def configure_logging(settings: Settings) -> None:
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.app_env == "development"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(settings.log_level),
    )


configure_logging(get_settings())
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    # A bad policy in the environment stops startup here
    policy = ScoringPolicy.from_settings(settings)
    logger.info(
        "compliance_engine_starting",
        env=settings.app_env,
        model_version=MODEL_VERSION,
        threshold_warning=policy.threshold_warning,
        threshold_critical=policy.threshold_critical,
        kafka_enabled=settings.kafka_enabled,
    )
    yield
    await close_producer()
    logger.info("compliance_engine_stopped")


app = FastAPI(
    title="GST Compliance Risk Engine",
    description="Per-client compliance risk scoring for the GST filing platform",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # admin portal origin is set at the ingress
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)
app.mount("/metrics", make_asgi_app())

app.include_router(risk_router)
app.include_router(admin_router)


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": get_settings().app_name,
        "version": SERVICE_VERSION,
        "model_version": MODEL_VERSION,
        "docs": "/docs",
    }
