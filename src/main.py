"""NagarSeva FastAPI application entry point.

Creates the FastAPI app, configures logging and middleware, includes the
v1 routers and manages the lifecycle of the complaint services (record
store, secret manager, classifier, intake engine, mutation gate and the
WhatsApp messaging client).
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import settings
from src.api.router import api_router
from src.middleware.privacy import PrivacyHeadersMiddleware, redact_sensitive

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_sensitive,
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            settings.log_level,
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


def _build_classifier():
    """Gemini when a GCP project is configured, keyword heuristic otherwise."""
    from src.services.classifier import GuardedClassifier, KeywordClassifier, LLMClassifier

    inner = KeywordClassifier()
    if settings.gcp_project_id:
        try:
            from src.services.llm import LLMService

            inner = LLMClassifier(
                LLMService(
                    project_id=settings.gcp_project_id,
                    region=settings.vertex_ai_location,
                    model_name=settings.vertex_ai_model,
                ),
            )
        except Exception:
            logger.warning("app.llm_init_failed_using_keywords", exc_info=True)
    return GuardedClassifier(inner, timeout_seconds=settings.classifier_timeout_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the services on startup, put them on ``app.state``, tear down on exit."""
    _configure_logging()
    logger.info("app.startup", env=settings.env, gcp_project=settings.gcp_project_id or None)

    app.state.start_time = time.time()

    from src.services.cache import CacheManager
    from src.services.filing import ComplaintFiler
    from src.services.intake import IntakeEngine, IntakeMachine, SessionRegistry
    from src.services.messaging import MessagingService
    from src.services.mutation_gate import MutationGate
    from src.services.record_store import InMemoryRecordStore
    from src.services.secret_manager import SecretManager

    # -- 1. Storage and secrets -----------------------------------------------
    store = InMemoryRecordStore()
    secrets = SecretManager(rounds=settings.bcrypt_rounds)
    app.state.store = store

    # -- 2. Classifier ------------------------------------------------------
    classifier = _build_classifier()
    app.state.classifier = classifier
    logger.info("app.classifier_initialised", classifier=type(classifier.inner).__name__)

    # -- 3. Filing and the mutation gate ------------------------------------
    filer = ComplaintFiler(
        store,
        secrets,
        classifier,
        min_secret_length=settings.min_secret_length,
        max_secret_length=settings.max_secret_length,
    )
    app.state.filer = filer
    app.state.gate = MutationGate(store, secrets)

    # -- 4. Intake sessions and engine --------------------------------------
    session_cache = CacheManager(redis_url=settings.redis_url or None, namespace="nagarseva:intake:")
    app.state.session_cache = session_cache
    registry = SessionRegistry(
        session_cache,
        ttl_seconds=settings.session_ttl_seconds,
        sweep_interval_seconds=settings.session_sweep_interval_seconds,
    )
    app.state.intake = IntakeEngine(
        registry=registry,
        machine=IntakeMachine(
            min_description_chars=settings.intake_min_description_chars,
            min_secret_length=settings.min_secret_length,
            max_secret_length=settings.max_secret_length,
        ),
        classifier=classifier,
        store=store,
        filer=filer,
    )
    registry.start_sweeper()

    # -- 5. Outbound WhatsApp -----------------------------------------------
    app.state.messaging = MessagingService(
        whatsapp_phone_id=settings.whatsapp_phone_id,
        whatsapp_access_token=settings.whatsapp_access_token,
    )

    logger.info("app.startup_complete")

    yield

    logger.info("app.shutdown_start")
    await registry.stop()
    await session_cache.close()
    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="NagarSeva API",
    description=(
        "NagarSeva -- municipal grievance intake. Citizens file and track civic "
        "complaints over the web, WhatsApp or SMS; officials triage and resolve them."
    ),
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# -- CORS middleware --------------------------------------------------------
# allow_credentials=True must not be combined with allow_origins=["*"].
if settings.is_production:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["Content-Type", "Authorization", "X-Official-Key", "X-Official-Id"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173", "http://127.0.0.1:8000"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "OPTIONS", "HEAD"],
        allow_headers=["Content-Type", "Accept", "Authorization", "X-Official-Key", "X-Official-Id"],
    )

app.add_middleware(PrivacyHeadersMiddleware)

# -- Prometheus metrics -----------------------------------------------------
try:
    from prometheus_fastapi_instrumentator import Instrumentator

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/metrics", "/api/v1/health"],
    ).instrument(app).expose(
        app,
        endpoint="/metrics",
        include_in_schema=not settings.is_production,
    )
    logger.info("app.prometheus_metrics_enabled")
except ImportError:
    logger.warning("app.prometheus_not_available")

app.include_router(api_router)


@app.get("/api", response_class=ORJSONResponse)
async def api_info() -> dict:
    """API information endpoint."""
    return {
        "name": "NagarSeva API",
        "version": app.version,
        "docs": "/docs",
        "health": "/api/v1/health",
        "endpoints": {
            "complaints": "/api/v1/complaints",
            "officials": "/api/v1/officials",
            "chat": "/api/v1/chat/message",
            "whatsapp_webhook": "/api/v1/chat/whatsapp/webhook",
            "sms_webhook": "/api/v1/chat/sms/webhook",
        },
    }
