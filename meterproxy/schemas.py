from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class SessionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    TERMINATED = "terminated"
    ERROR = "error"


class SubscriptionStatus(str, Enum):
    FREE = "free"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"


class UsageEventType(str, Enum):
    PAGE_REQUEST = "page_request"
    ERROR = "error"
    SESSION_START = "session_start"
    SESSION_END = "session_end"
    DATA_TRANSFER = "data_transfer"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProxySession(BaseModel):
    id: str
    user_id: str
    target_domain: str
    status: SessionStatus = SessionStatus.ACTIVE
    started_at: datetime
    ended_at: Optional[datetime] = None
    bytes_transferred: int = 0
    requests_count: int = 0
    last_activity_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE


class UserQuota(BaseModel):
    user_id: str
    balance_minutes: int = Field(ge=0)
    subscription_status: SubscriptionStatus = SubscriptionStatus.FREE

    def allows_proxying(self) -> bool:
        return self.balance_minutes > 0 or self.subscription_status is SubscriptionStatus.ACTIVE


class UsageLogEntry(BaseModel):
    event_type: UsageEventType
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    target_url: Optional[str] = None
    bytes_transferred: int = 0
    response_time_ms: Optional[int] = None
    status_code: Optional[int] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_now)

    model_config = {"frozen": True}
