from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import text, update
from sqlalchemy.orm import sessionmaker

from ..interfaces import QuotaStore, UsageLogSink
from ..models import ProxySessionRecord, UsageLog, UserProfile, utcnow
from ..schemas import ProxySession, SessionStatus, UsageLogEntry, UserQuota

logger = logging.getLogger("meterproxy.store")


def _to_session(row: ProxySessionRecord) -> ProxySession:
    return ProxySession(
        id=row.id,
        user_id=row.user_id,
        target_domain=row.target_domain,
        status=SessionStatus(row.status),
        started_at=row.started_at,
        ended_at=row.ended_at,
        bytes_transferred=row.bytes_transferred or 0,
        requests_count=row.requests_count or 0,
        last_activity_at=row.last_activity_at,
        metadata=dict(row.meta or {}),
    )


class SqlQuotaStore(QuotaStore):
    """QuotaStore over the proxy_sessions / user_profiles tables."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def ping(self) -> bool:
        with self._session_factory() as db:
            db.execute(text("SELECT 1"))
        return True

    def get_active_session(self, session_id: str) -> Optional[ProxySession]:
        with self._session_factory() as db:
            row = db.get(ProxySessionRecord, session_id)
            if row is None or row.status != SessionStatus.ACTIVE.value:
                return None
            return _to_session(row)

    def get_user_quota(self, user_id: str) -> Optional[UserQuota]:
        with self._session_factory() as db:
            row = db.get(UserProfile, user_id)
            if row is None:
                return None
            return UserQuota(
                user_id=row.id,
                balance_minutes=max(0, row.time_balance_minutes or 0),
                subscription_status=row.subscription_status,
            )

    def expire_session(self, session_id: str, reason: str) -> bool:
        stmt = (
            update(ProxySessionRecord)
            .where(ProxySessionRecord.id == session_id)
            .where(ProxySessionRecord.status == SessionStatus.ACTIVE.value)
            .values(
                status=SessionStatus.EXPIRED.value,
                ended_at=utcnow(),
                error_message=reason,
            )
        )
        with self._session_factory.begin() as db:
            changed = db.execute(stmt).rowcount == 1
        if changed:
            logger.info("session %s expired: %s", session_id, reason)
        return changed

    def increment_session_metrics(self, session_id: str, bytes_transferred: int, response_time_ms: int) -> bool:
        stmt = (
            update(ProxySessionRecord)
            .where(ProxySessionRecord.id == session_id)
            .where(ProxySessionRecord.status == SessionStatus.ACTIVE.value)
            .values(
                bytes_transferred=ProxySessionRecord.bytes_transferred + max(0, int(bytes_transferred)),
                requests_count=ProxySessionRecord.requests_count + 1,
                total_response_time_ms=ProxySessionRecord.total_response_time_ms + max(0, int(response_time_ms)),
                last_activity_at=utcnow(),
            )
        )
        with self._session_factory.begin() as db:
            return db.execute(stmt).rowcount == 1


class SqlUsageLogSink(UsageLogSink):
    """Writes UsageLogEntry rows into usage_logs."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def append_usage_log(self, entry: UsageLogEntry) -> None:
        row = UsageLog(
            user_id=entry.user_id,
            session_id=entry.session_id,
            event_type=entry.event_type.value,
            target_url=entry.target_url,
            bytes_transferred=entry.bytes_transferred,
            response_time_ms=entry.response_time_ms,
            status_code=entry.status_code,
            meta=dict(entry.metadata),
            created_at=entry.created_at,
        )
        with self._session_factory.begin() as db:
            db.add(row)
