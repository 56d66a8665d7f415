from __future__ import annotations

import ipaddress
import logging
import re
from typing import Mapping, Optional
from urllib.parse import urlsplit

import httpx

from .errors import InvalidUrlFormat, UpstreamFetchFailure

logger = logging.getLogger("meterproxy.upstream")

BODYLESS_METHODS = ("GET", "HEAD")

_LABEL = re.compile(r"^(?!-)[a-z0-9_-]{1,63}(?<!-)$")
_TLD = re.compile(r"^(?:[a-z]{2,63}|xn--[a-z0-9-]{1,59})$")


def _valid_host(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass
    if host == "localhost":
        return True
    labels = host.rstrip(".").split(".")
    if len(labels) < 2:
        return False
    return all(_LABEL.match(label) for label in labels) and bool(_TLD.match(labels[-1]))


def normalize_target_url(target_url: str) -> str:
    """
    Default the scheme to https and reject anything that is not a usable
    absolute http(s) URL.
    """
    candidate = (target_url or "").strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        raise InvalidUrlFormat()
    if not candidate.lower().startswith(("http://", "https://")):
        candidate = "https://" + candidate

    try:
        parts = urlsplit(candidate)
        host = parts.hostname
        parts.port  # raises ValueError on a bad port
    except ValueError:
        raise InvalidUrlFormat()

    if not host or not _valid_host(host):
        raise InvalidUrlFormat()
    return candidate


def build_client(timeout_s: float, max_connections: int, max_keepalive: int) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_s),
        follow_redirects=True,
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive,
            keepalive_expiry=30.0,
        ),
    )


async def fetch_upstream(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: Mapping[str, str],
    body: Optional[bytes] = None,
) -> httpx.Response:
    """
    Send one request upstream and return the response with its body unread.

    The caller owns the returned response and must close it (``aread`` or
    ``aclose``). Connection problems surface as ``UpstreamFetchFailure``;
    nothing is retried here.
    """
    method = method.upper()
    content = None if method in BODYLESS_METHODS else (body or None)
    try:
        request = client.build_request(method, url, headers=dict(headers), content=content)
    except httpx.InvalidURL:
        raise InvalidUrlFormat()

    try:
        return await client.send(request, stream=True, follow_redirects=True)
    except httpx.HTTPError as exc:
        logger.warning("upstream fetch failed for %s %s: %r", method, url, exc)
        detail = str(exc) or exc.__class__.__name__
        raise UpstreamFetchFailure(f"Failed to fetch target URL: {detail}") from exc
