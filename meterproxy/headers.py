from __future__ import annotations

from typing import Dict, Mapping, Optional

from .config import PROXY_DEFAULT_USER_AGENT

# --- request side ---
REQUEST_HEADER_ALLOWLIST = (
    "accept",
    "accept-language",
    "cache-control",
    "content-type",
    "user-agent",
)
REQUEST_HEADER_DROP = ("host", "origin", "referer")

# --- response side ---
RESPONSE_HEADER_ALLOWLIST = (
    "content-type",
    "content-encoding",
    "content-language",
    "cache-control",
    "expires",
    "last-modified",
    "etag",
)
RESPONSE_HEADER_DENYLIST = (
    "content-security-policy",
    "content-security-policy-report-only",
    "x-frame-options",
    "x-content-type-options",
    "strict-transport-security",
    "permissions-policy",
    "feature-policy",
)
# deleted again after the copy, whatever the lists above say
RESPONSE_HEADERS_ALWAYS_REMOVED = (
    "x-frame-options",
    "x-content-type-options",
    "permissions-policy",
    "feature-policy",
)

PERMISSIVE_CSP = "; ".join([
    "default-src 'self' * data: blob:",
    "script-src 'self' 'unsafe-inline' 'unsafe-eval' * data: blob:",
    "style-src 'self' 'unsafe-inline' * data: blob:",
    "img-src 'self' * data: blob:",
    "font-src 'self' * data: blob:",
    "connect-src 'self' * data: blob:",
    "media-src 'self' * data: blob:",
    "object-src 'none'",
    "frame-src 'self' * data: blob:",
    "worker-src 'self' * blob:",
    "form-action 'self' *",
    "frame-ancestors *",
    "base-uri 'self' *",
    "manifest-src 'self' *",
])


def sanitize_request_headers(
    incoming: Mapping[str, str],
    default_user_agent: str = PROXY_DEFAULT_USER_AGENT,
) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for key, value in incoming.items():
        k = key.lower()
        if k in REQUEST_HEADER_ALLOWLIST and k not in REQUEST_HEADER_DROP:
            out[k] = value
    if not out.get("user-agent"):
        out["user-agent"] = default_user_agent
    return out


def sanitize_response_headers(
    upstream: Mapping[str, str],
    response_time_ms: int,
    *,
    decoded_body: bool = False,
    csp: Optional[str] = PERMISSIVE_CSP,
) -> Dict[str, str]:
    """
    Build the outgoing header set from the upstream response headers.

    ``decoded_body`` drops content-encoding, for bodies that were decompressed
    and rewritten before being sent on.
    """
    out: Dict[str, str] = {}
    for key in upstream.keys():
        k = key.lower()
        if k not in RESPONSE_HEADER_ALLOWLIST or k in RESPONSE_HEADER_DENYLIST:
            continue
        if decoded_body and k == "content-encoding":
            continue
        value = upstream.get(key)
        if value is not None:
            out[k] = value

    for k in RESPONSE_HEADERS_ALWAYS_REMOVED:
        out.pop(k, None)

    if csp:
        out["content-security-policy"] = csp
    out["x-proxy-status"] = "success"
    out["x-response-time"] = str(int(response_time_ms))
    return out
