# app/main.py
import logging
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import setup_logging
from app.core.middleware import RequestLoggingMiddleware

# Routers
from app.routers.analytics import router as analytics_router
from app.routers.employees import router as employees_router
from app.routers.events import router as events_router
from app.routers.health import router as health_router
from app.routers.rules import router as rules_router

# Engine bootstrap
from app.services.llm.model_provider import StructuredModelProvider
from app.services.rules.engine_container import build_engine, build_store

logger = logging.getLogger(__name__)


def create_app(
    *,
    store: Optional[Any] = None,
    provider: Optional[StructuredModelProvider] = None,
) -> FastAPI:
    """
    `store` / `provider` replace the configured storage backend and model
    provider (tests, local demos).
    """
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Rewards Rule Engine")

    # -------------------------------------------------
    # CORS
    # -------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # -------------------------------------------------
    # Startup
    # -------------------------------------------------
    @app.on_event("startup")
    def startup():
        # 1) Storage (fail fast on missing credentials)
        reward_store = store if store is not None else build_store(settings)

        # 2) Engine: cache, analytics, router, evaluators, services
        app.state.engine = build_engine(settings, reward_store, provider=provider)

        logger.info(
            "[BOOT] engine ready storage=%s ai_provider=%s ai_configured=%s",
            reward_store.__class__.__name__,
            settings.AI_PROVIDER,
            app.state.engine.router.is_configured(),
        )

    # -------------------------------------------------
    # Routers
    # -------------------------------------------------
    app.include_router(health_router, prefix="/api/v1/health", tags=["health"])
    app.include_router(events_router, prefix="/api/v1/events", tags=["events"])
    app.include_router(rules_router, prefix="/api/v1/rules", tags=["rules"])
    app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["analytics"])
    app.include_router(employees_router, prefix="/api/v1/employees", tags=["employees"])

    return app


app = create_app()
