from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    BigInteger,
    ForeignKey,
    JSON,
    text,
)

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserProfile(Base):
    __tablename__ = "user_profiles"
    __table_args__ = (
        sa.CheckConstraint(
            "subscription_status IN ('free', 'active', 'cancelled', 'past_due')",
            name="ck_user_profiles_subscription_status",
        ),
        sa.CheckConstraint("time_balance_minutes >= 0", name="ck_user_profiles_balance"),
    )

    id = Column(String(64), primary_key=True)
    email = Column(String(320), unique=True, nullable=True)
    time_balance_minutes = Column(Integer, nullable=False, default=60, server_default=text("60"))
    subscription_status = Column(String(20), nullable=False, default="free", server_default=text("'free'"))
    total_bytes_used = Column(BigInteger, nullable=False, default=0, server_default=text("0"))
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class ProxySessionRecord(Base):
    __tablename__ = "proxy_sessions"
    __table_args__ = (
        sa.CheckConstraint(
            "status IN ('active', 'expired', 'terminated', 'error')",
            name="ck_proxy_sessions_status",
        ),
    )

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    target_domain = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default="active", server_default=text("'active'"), index=True)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    last_activity_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # counters only ever move up, and only while status = 'active'
    bytes_transferred = Column(BigInteger, nullable=False, default=0, server_default=text("0"))
    requests_count = Column(Integer, nullable=False, default=0, server_default=text("0"))
    total_response_time_ms = Column(BigInteger, nullable=False, default=0, server_default=text("0"))

    error_message = Column(Text, nullable=True)
    meta = Column("metadata", JSON, nullable=False, default=dict)


class UsageLog(Base):
    """Append-only; rows are never updated or deleted by the proxy."""

    __tablename__ = "usage_logs"
    __table_args__ = (
        sa.CheckConstraint(
            "event_type IN ('page_request', 'error', 'session_start', 'session_end', 'data_transfer')",
            name="ck_usage_logs_event_type",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    # plain columns, no FKs: error entries may reference sessions that never existed
    user_id = Column(String(64), nullable=True, index=True)
    session_id = Column(String(64), nullable=True, index=True)
    event_type = Column(String(32), nullable=False, index=True)
    target_url = Column(Text, nullable=True)
    bytes_transferred = Column(BigInteger, nullable=False, default=0, server_default=text("0"))
    response_time_ms = Column(Integer, nullable=True)
    status_code = Column(Integer, nullable=True)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
