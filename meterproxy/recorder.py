"""
Best-effort usage metering and audit logging.

Both entry points run after the response has gone out (as Starlette background
tasks) and never raise: the outcome comes back as a ``RecordResult`` that is
only used for local diagnostics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import utc_timestamp
from .interfaces import QuotaStore, UsageLogSink
from .schemas import UsageEventType, UsageLogEntry

logger = logging.getLogger("meterproxy.metrics")


@dataclass
class RecordResult:
    ok: bool = True
    errors: List[str] = field(default_factory=list)

    def fail(self, what: str, exc: BaseException) -> None:
        self.ok = False
        self.errors.append(f"{what}: {exc!r}")


@dataclass
class TransferMeter:
    """Bytes actually handed to the client; filled in while a body streams."""
    bytes_sent: int = 0

    def add(self, chunk: bytes) -> bytes:
        self.bytes_sent += len(chunk)
        return chunk


@dataclass
class PageRequest:
    session_id: str
    user_id: str
    target_url: str
    method: str
    status_code: int
    response_time_ms: int
    content_type: Optional[str] = None
    user_agent: Optional[str] = None


def record_page_request(
    store: QuotaStore,
    sink: UsageLogSink,
    page: PageRequest,
    meter: TransferMeter,
) -> RecordResult:
    result = RecordResult()
    byte_count = meter.bytes_sent

    try:
        if not store.increment_session_metrics(page.session_id, byte_count, page.response_time_ms):
            logger.warning("session %s no longer active; counters not updated", page.session_id)
    except Exception as exc:
        result.fail("increment_session_metrics", exc)

    try:
        sink.append_usage_log(UsageLogEntry(
            event_type=UsageEventType.PAGE_REQUEST,
            user_id=page.user_id,
            session_id=page.session_id,
            target_url=page.target_url,
            bytes_transferred=byte_count,
            response_time_ms=page.response_time_ms,
            status_code=page.status_code,
            metadata={
                "method": page.method,
                "content_type": page.content_type,
                "user_agent": page.user_agent,
            },
        ))
    except Exception as exc:
        result.fail("append_usage_log", exc)

    if not result.ok:
        logger.warning("failed to record usage for session %s: %s", page.session_id, "; ".join(result.errors))
    return result


def record_error(
    sink: UsageLogSink,
    *,
    message: str,
    url: str,
    method: str,
    session_id: Optional[str] = None,
    status_code: Optional[int] = None,
) -> RecordResult:
    result = RecordResult()
    try:
        sink.append_usage_log(UsageLogEntry(
            event_type=UsageEventType.ERROR,
            session_id=session_id,
            status_code=status_code,
            metadata={
                "error": message,
                "url": url,
                "method": method,
                "timestamp": utc_timestamp(),
            },
        ))
    except Exception as exc:
        result.fail("append_usage_log", exc)
        logger.warning("failed to log error for %s %s: %s", method, url, exc)
    return result
