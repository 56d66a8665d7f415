import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.concurrency import run_in_threadpool

router = APIRouter()
logger = logging.getLogger("meterproxy.health")


@router.get("/")
async def health(request: Request):
    """Liveness plus one round trip to the session store."""
    store = getattr(request.app.state, "quota_store", None)
    if store is None:
        return JSONResponse(status_code=503, content={"status": "starting", "store": "missing"})

    try:
        await run_in_threadpool(store.ping)
    except Exception as exc:
        logger.warning("session store ping failed: %r", exc)
        return JSONResponse(status_code=503, content={"status": "degraded", "store": "unreachable"})
    return {"status": "ok", "store": "ok"}


@router.get("/redis")
async def health_redis(request: Request):
    client = getattr(request.app.state, "redis", None)
    if client is None:
        # rate limiting is off without REDIS_URL
        return JSONResponse(status_code=503, content={"ok": False, "error": "redis_not_configured"})

    try:
        pong = await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("redis ping failed: %r", exc)
        return JSONResponse(
            status_code=503,
            content={"ok": False, "error": "redis_ping_failed", "detail": exc.__class__.__name__},
        )

    limiter = getattr(request.app.state, "rate_limiter", None)
    return {
        "ok": True,
        "ping": bool(pong),
        "rate_limit": limiter.limit if limiter is not None else None,
    }
