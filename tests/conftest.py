from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from meterproxy.app import create_app
from meterproxy.init_db import init_db
from meterproxy.models import ProxySessionRecord, UsageLog, UserProfile
from meterproxy.stores import SqlQuotaStore, SqlUsageLogSink


class FakeUpstream:
    """Stands in for the internet behind an httpx.MockTransport."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Tuple[int, bytes, Dict[str, str]]] = {}
        self.error: Optional[Exception] = None

    def add(self, host: str, path: str = "/", *, status: int = 200, body=b"", headers=None):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[(host, path)] = (status, body, dict(headers or {}))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        key = (request.url.host, request.url.path or "/")
        if key not in self.routes:
            return httpx.Response(404, headers={"content-type": "text/plain"}, stream=httpx.ByteStream(b"not found"))
        status, body, headers = self.routes[key]
        # an unread stream, like a real connection; content= would pre-read it
        return httpx.Response(status, headers=headers, stream=httpx.ByteStream(body))


class Seeder:
    def __init__(self, factory):
        self.factory = factory

    def user(self, user_id="user-1", balance=5, subscription="free"):
        with self.factory.begin() as db:
            db.add(UserProfile(
                id=user_id,
                email=f"{user_id}@example.com",
                time_balance_minutes=balance,
                subscription_status=subscription,
            ))
        return user_id

    def session(self, session_id="sess-1", user_id="user-1", status="active", **extra):
        now = datetime.now(timezone.utc)
        with self.factory.begin() as db:
            db.add(ProxySessionRecord(
                id=session_id,
                user_id=user_id,
                target_domain="example.com",
                status=status,
                started_at=now - timedelta(minutes=3),
                last_activity_at=now - timedelta(minutes=1),
                **extra,
            ))
        return session_id

    def get_session(self, session_id="sess-1") -> ProxySessionRecord:
        with self.factory() as db:
            return db.get(ProxySessionRecord, session_id)

    def logs(self, event_type=None) -> List[UsageLog]:
        with self.factory() as db:
            q = db.query(UsageLog)
            if event_type:
                q = q.filter(UsageLog.event_type == event_type)
            return q.order_by(UsageLog.id).all()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def quota_store(session_factory):
    return SqlQuotaStore(session_factory)


@pytest.fixture
def log_sink(session_factory):
    return SqlUsageLogSink(session_factory)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def app(quota_store, log_sink, upstream):
    app = create_app()
    app.state.quota_store = quota_store
    app.state.usage_log_sink = log_sink
    app.state.upstream_client = httpx.AsyncClient(
        transport=httpx.MockTransport(upstream.handle),
        follow_redirects=True,
    )
    app.state.redis = None
    app.state.rate_limiter = None
    return app


@pytest.fixture
def client(app):
    # not entered as a context manager, so the lifespan (real DB, real client) never runs
    return TestClient(app)
