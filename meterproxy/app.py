from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import (
    CORS_ALLOW_ORIGINS,
    LOG_LEVEL,
    RATE_LIMIT_PER_MINUTE,
    RATE_LIMIT_WINDOW_SECONDS,
    REDIS_URL,
    UPSTREAM_MAX_CONNECTIONS,
    UPSTREAM_MAX_KEEPALIVE,
    UPSTREAM_TIMEOUT_SECONDS,
)
from .db import SessionLocal
from .init_db import init_db
from .rate_limit import RateLimiter
from .routes import health, proxy
from .stores import SqlQuotaStore, SqlUsageLogSink
from .upstream import build_client

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("meterproxy")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.quota_store = SqlQuotaStore(SessionLocal)
    app.state.usage_log_sink = SqlUsageLogSink(SessionLocal)

    # Shared upstream HTTP client (per-worker)
    app.state.upstream_client = build_client(
        UPSTREAM_TIMEOUT_SECONDS,
        UPSTREAM_MAX_CONNECTIONS,
        UPSTREAM_MAX_KEEPALIVE,
    )

    app.state.redis = None
    app.state.rate_limiter = None
    if REDIS_URL:
        app.state.redis = redis.from_url(REDIS_URL, decode_responses=True)
        app.state.rate_limiter = RateLimiter(app.state.redis, RATE_LIMIT_PER_MINUTE, RATE_LIMIT_WINDOW_SECONDS)
    else:
        logger.info("REDIS_URL not set; rate limiting disabled")

    try:
        yield
    finally:
        # Close upstream client first
        try:
            await app.state.upstream_client.aclose()
        except Exception as exc:
            logger.warning("error closing upstream client: %r", exc)

        # Then close Redis
        if app.state.redis is not None:
            try:
                await app.state.redis.aclose()
            except Exception as exc:
                logger.warning("error closing redis: %r", exc)


def create_app() -> FastAPI:
    app = FastAPI(title="Metered Proxy", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Proxy-Status", "X-Response-Time"],
    )

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(proxy.router, tags=["proxy"])
    return app


app = create_app()
