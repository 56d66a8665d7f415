from __future__ import annotations

from typing import Optional

import httpx
from fastapi import Request

from .interfaces import QuotaStore, UsageLogSink
from .rate_limit import RateLimiter


def get_quota_store(request: Request) -> QuotaStore:
    return request.app.state.quota_store


def get_usage_log_sink(request: Request) -> UsageLogSink:
    return request.app.state.usage_log_sink


def get_upstream_client(request: Request) -> httpx.AsyncClient:
    client = getattr(request.app.state, "upstream_client", None)
    if client is None:
        raise RuntimeError("Upstream HTTP client not initialized (lifespan did not run?)")
    return client


def get_rate_limiter(request: Request) -> Optional[RateLimiter]:
    return getattr(request.app.state, "rate_limiter", None)
