from __future__ import annotations

import logging
from time import perf_counter
from typing import Optional
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends, Request
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse

from ..classifier import ProxyMode, ProxyTarget, classify_request, usage_hint
from ..config import PROXY_PUBLIC_BASE, PROXY_ROUTE_MARKER, PROXY_SCRIPT_BRIDGE
from ..deps import get_quota_store, get_rate_limiter, get_upstream_client, get_usage_log_sink
from ..errors import ProxyError, RateLimitExceeded, UpstreamFetchFailure, error_response, status_for
from ..headers import sanitize_request_headers, sanitize_response_headers
from ..interfaces import QuotaStore, UsageLogSink
from ..quota_guard import check_quota
from ..rate_limit import RateLimiter
from ..recorder import PageRequest, TransferMeter, record_error, record_page_request
from ..rewriter import ContentRewriter, is_html
from ..upstream import BODYLESS_METHODS, fetch_upstream, normalize_target_url

router = APIRouter()
logger = logging.getLogger("meterproxy.proxy")

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
# never carry a body, like 1xx
NO_BODY_STATUSES = (204, 304)
# printable ASCII passes; other raw bytes are percent-encoded for a UTF-8 unquote()
_RAW_PATH_SAFE = "".join(chr(c) for c in range(0x21, 0x7f))


def _raw_path(request: Request) -> str:
    # scope["path"] is already percent-decoded; the classifier needs the wire form
    raw = request.scope.get("raw_path")
    if isinstance(raw, (bytes, bytearray)):
        return quote(bytes(raw), safe=_RAW_PATH_SAFE).split("?", 1)[0]
    return request.url.path


def _service_url(request: Request) -> str:
    base = PROXY_PUBLIC_BASE or str(request.base_url).rstrip("/")
    return f"{base}/{PROXY_ROUTE_MARKER}"


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


async def _build_response(
    request: Request,
    upstream: httpx.Response,
    *,
    target: ProxyTarget,
    target_url: str,
    user_id: Optional[str],
    response_time_ms: int,
    store: QuotaStore,
    sink: UsageLogSink,
) -> Response:
    method = request.method.upper()
    content_type = upstream.headers.get("content-type", "")
    meter = TransferMeter()

    background = None
    if target.mode is ProxyMode.AUTHENTICATED and user_id:
        page = PageRequest(
            session_id=target.session_id,
            user_id=user_id,
            target_url=target_url,
            method=method,
            status_code=upstream.status_code,
            response_time_ms=response_time_ms,
            content_type=content_type or None,
            user_agent=request.headers.get("user-agent"),
        )
        # runs once the body has been sent, so the meter is final by then
        background = BackgroundTask(record_page_request, store, sink, page, meter)

    if method == "HEAD" or upstream.status_code < 200 or upstream.status_code in NO_BODY_STATUSES:
        await upstream.aclose()
        headers = sanitize_response_headers(upstream.headers, response_time_ms)
        return Response(status_code=upstream.status_code, headers=headers, background=background)

    if is_html(content_type):
        try:
            await upstream.aread()
        except httpx.HTTPError as exc:
            raise UpstreamFetchFailure(f"Failed to fetch target URL: {exc}") from exc
        finally:
            await upstream.aclose()

        rewriter = ContentRewriter(_service_url(request), script_bridge=PROXY_SCRIPT_BRIDGE)
        html = rewriter.rewrite(upstream.text, target_url, target.session_id)
        body = meter.add(html.encode(upstream.encoding or "utf-8", errors="xmlcharrefreplace"))
        headers = sanitize_response_headers(upstream.headers, response_time_ms, decoded_body=True)
        return Response(content=body, status_code=upstream.status_code, headers=headers, background=background)

    async def relay():
        try:
            async for chunk in upstream.aiter_raw():
                yield meter.add(chunk)
        except httpx.HTTPError as exc:
            logger.warning("upstream stream for %s broke after %d bytes: %r", target_url, meter.bytes_sent, exc)
        finally:
            await upstream.aclose()

    headers = sanitize_response_headers(upstream.headers, response_time_ms)
    return StreamingResponse(relay(), status_code=upstream.status_code, headers=headers, background=background)


@router.api_route(f"/{PROXY_ROUTE_MARKER}", methods=PROXY_METHODS)
@router.api_route(f"/{PROXY_ROUTE_MARKER}/{{tail:path}}", methods=PROXY_METHODS)
async def proxy_service(
    request: Request,
    store: QuotaStore = Depends(get_quota_store),
    sink: UsageLogSink = Depends(get_usage_log_sink),
    client: httpx.AsyncClient = Depends(get_upstream_client),
    limiter: Optional[RateLimiter] = Depends(get_rate_limiter),
) -> Response:
    """
    Proxy endpoint, in three request forms:

      GET /proxy-service?url=<target>                     simple, unmetered
      GET /proxy-service/{sessionId}/{encoded target}     authenticated, metered
      GET /proxy-service?session=<id>&target=<target>     legacy authenticated

    Pipeline: classify -> normalize URL -> rate limit -> quota guard (authenticated
    only) -> fetch -> rewrite HTML -> sanitize headers -> record usage after send.
    Every failure becomes a JSON error body and a best-effort error log entry.
    """
    method = request.method.upper()
    if method == "OPTIONS":
        return PlainTextResponse("ok")

    session_id: Optional[str] = None
    try:
        target = classify_request(_raw_path(request), request.query_params)
        if target.mode is ProxyMode.EMPTY:
            return JSONResponse(usage_hint())

        session_id = target.session_id
        target_url = normalize_target_url(target.target_url)
        logger.info("proxy request mode=%s session=%s target=%s", target.mode.value, session_id, target_url)

        if limiter is not None:
            if target.mode is ProxyMode.AUTHENTICATED:
                allowed = await limiter.allow("session", session_id)
                limited = "Too many requests for this session"
            else:
                allowed = await limiter.allow("ip", _client_ip(request))
                limited = "Too many requests from this client"
            if not allowed:
                raise RateLimitExceeded(limited)

        user_id: Optional[str] = None
        if target.mode is ProxyMode.AUTHENTICATED:
            user_id = await run_in_threadpool(check_quota, store, session_id)

        body = None if method in BODYLESS_METHODS else await request.body()
        t0 = perf_counter()
        upstream = await fetch_upstream(client, method, target_url, sanitize_request_headers(request.headers), body)
        response_time_ms = int((perf_counter() - t0) * 1000)

        return await _build_response(
            request,
            upstream,
            target=target,
            target_url=target_url,
            user_id=user_id,
            response_time_ms=response_time_ms,
            store=store,
            sink=sink,
        )

    except Exception as exc:
        if isinstance(exc, ProxyError):
            logger.info("proxy request rejected (%s): %s", exc.__class__.__name__, exc)
        else:
            logger.exception("unexpected proxy failure for %s %s", method, request.url)

        return error_response(
            exc,
            background=BackgroundTask(
                record_error,
                sink,
                message=str(exc),
                url=str(request.url),
                method=method,
                session_id=session_id,
                status_code=status_for(exc),
            ),
        )
