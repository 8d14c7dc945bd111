"""FastAPI application factory.

create_app() wires routes and middleware and builds the one MetricsHub the
process owns (app.state.metrics_hub). Subscriptions live in that hub's
memory, so run a single worker per listing audience; Redis is only used
for rate limiting and may be absent.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smartsell import __version__
from smartsell.api import api_router
from smartsell.cache import close_redis, init_redis
from smartsell.config import settings
from smartsell.db.engine import async_session_factory, engine
from smartsell.middleware.rate_limit import RateLimitMiddleware
from smartsell.middleware.request_id import RequestIdMiddleware
from smartsell.middleware.security import SecurityHeadersMiddleware
from smartsell.realtime.hub import MetricsHub
from smartsell.realtime.websocket import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "smartsell.starting",
        version=__version__,
        environment=settings.environment,
        database="sqlite" if settings.is_sqlite else "postgresql",
    )
    try:
        await init_redis()
        logger.info("smartsell.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("smartsell.redis_unavailable", error=str(e))

    yield

    # Open sockets are closed by the server; their subscriptions go with them.
    logger.info(
        "smartsell.shutdown",
        subscribers=app.state.metrics_hub.subscriber_count(),
    )
    await close_redis()
    await engine.dispose()


def build_metrics_hub() -> MetricsHub:
    return MetricsHub(
        async_session_factory,
        send_timeout=settings.broadcast_send_timeout,
        max_subscribers_per_listing=settings.max_subscribers_per_listing,
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="SmartSell",
        description="Marketplace listings with live view/share/click metrics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.metrics_hub = build_metrics_hub()

    # Registered innermost first: a request passes CORS, then the rate
    # limiter, then security headers, then request-id/access logging.
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        track_rpm=settings.rate_limit_track_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.include_router(ws_router)
    return app


# uvicorn smartsell.main:app
app = create_app()
