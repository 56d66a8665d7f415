from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Mapping, Optional
from urllib.parse import unquote

from .config import PROXY_ROUTE_MARKER
from .errors import MissingTargetUrl


class ProxyMode(str, Enum):
    SIMPLE = "simple"
    AUTHENTICATED = "authenticated"
    EMPTY = "empty"


@dataclass(frozen=True)
class ProxyTarget:
    mode: ProxyMode
    session_id: Optional[str] = None
    target_url: Optional[str] = None


def _tail_after_marker(raw_path: str, marker: str) -> List[str]:
    parts = raw_path.split("/")
    try:
        idx = parts.index(marker)
    except ValueError:
        return []
    return parts[idx + 1:]


def classify_request(
    raw_path: str,
    query: Mapping[str, str],
    marker: str = PROXY_ROUTE_MARKER,
) -> ProxyTarget:
    """
    Work out which of the three request forms was used.

    ``raw_path`` must be the path as it arrived on the wire (still
    percent-encoded): the authenticated form rejoins every segment after the
    session id and decodes the result once, so an encoded ``%2F`` and a literal
    ``/`` inside the target both survive.

    Raises ``MissingTargetUrl`` when a session id is present without a target.
    A request with neither comes back as ``ProxyMode.EMPTY``.
    """
    session_id: Optional[str] = None
    target_url: Optional[str] = None

    if "url" in query:
        mode = ProxyMode.SIMPLE
        target_url = query.get("url") or None
    else:
        tail = _tail_after_marker(raw_path.split("?", 1)[0], marker)
        if tail and tail[0]:
            mode = ProxyMode.AUTHENTICATED
            session_id = unquote(tail[0])
            target_url = unquote("/".join(tail[1:])) or None
        else:
            # legacy ?session=&target=
            session_id = query.get("session") or None
            target_url = query.get("target") or None
            mode = ProxyMode.AUTHENTICATED if session_id else ProxyMode.SIMPLE

    if target_url is None:
        if session_id:
            raise MissingTargetUrl()
        return ProxyTarget(mode=ProxyMode.EMPTY)

    return ProxyTarget(mode=mode, session_id=session_id, target_url=target_url)


def usage_hint(marker: str = PROXY_ROUTE_MARKER) -> dict:
    return {
        "message": "Proxy service is running. Please provide a session ID and target URL.",
        "usage": f"GET /{marker}/{{sessionId}}/{{encodedTargetUrl}}",
        "example": f"GET /{marker}/abc123/https%3A%2F%2Fexample.com",
    }
