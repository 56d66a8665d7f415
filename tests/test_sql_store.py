from meterproxy.schemas import SessionStatus, SubscriptionStatus, UsageEventType, UsageLogEntry


class TestQuotaStore:
    def test_get_active_session(self, seed, quota_store):
        seed.user("user-1")
        seed.session("sess-1", "user-1", meta={"src": "dashboard"})
        s = quota_store.get_active_session("sess-1")
        assert s.id == "sess-1"
        assert s.user_id == "user-1"
        assert s.status is SessionStatus.ACTIVE
        assert s.is_active
        assert s.requests_count == 0
        assert s.metadata == {"src": "dashboard"}

    def test_inactive_session_not_returned(self, seed, quota_store):
        seed.user("user-1")
        seed.session("sess-1", "user-1", status="terminated")
        assert quota_store.get_active_session("sess-1") is None
        assert quota_store.get_active_session("missing") is None

    def test_get_user_quota(self, seed, quota_store):
        seed.user("user-1", balance=42, subscription="past_due")
        q = quota_store.get_user_quota("user-1")
        assert q.balance_minutes == 42
        assert q.subscription_status is SubscriptionStatus.PAST_DUE
        assert q.allows_proxying()
        assert quota_store.get_user_quota("nobody") is None

    def test_expire_is_conditional(self, seed, quota_store):
        seed.user("user-1")
        seed.session("sess-1", "user-1")

        assert quota_store.expire_session("sess-1", "first") is True
        first = seed.get_session("sess-1")

        assert quota_store.expire_session("sess-1", "second") is False
        second = seed.get_session("sess-1")

        assert second.status == "expired"
        assert second.error_message == "first"
        assert second.ended_at == first.ended_at

    def test_expire_leaves_terminated_alone(self, seed, quota_store):
        seed.user("user-1")
        seed.session("sess-1", "user-1", status="terminated")
        assert quota_store.expire_session("sess-1", "x") is False
        assert seed.get_session("sess-1").status == "terminated"

    def test_increment_accumulates(self, seed, quota_store):
        seed.user("user-1")
        seed.session("sess-1", "user-1")
        before = seed.get_session("sess-1").last_activity_at

        assert quota_store.increment_session_metrics("sess-1", 100, 20) is True
        assert quota_store.increment_session_metrics("sess-1", 50, 5) is True

        row = seed.get_session("sess-1")
        assert row.bytes_transferred == 150
        assert row.requests_count == 2
        assert row.total_response_time_ms == 25
        assert row.last_activity_at > before

    def test_increment_ignores_negative_values(self, seed, quota_store):
        seed.user("user-1")
        seed.session("sess-1", "user-1", bytes_transferred=10)
        quota_store.increment_session_metrics("sess-1", -5, -1)
        row = seed.get_session("sess-1")
        assert row.bytes_transferred == 10
        assert row.requests_count == 1

    def test_increment_skips_inactive_session(self, seed, quota_store):
        seed.user("user-1")
        seed.session("sess-1", "user-1", status="expired")
        assert quota_store.increment_session_metrics("sess-1", 100, 1) is False
        assert seed.get_session("sess-1").requests_count == 0


class TestUsageLogSink:
    def test_append(self, seed, log_sink):
        log_sink.append_usage_log(UsageLogEntry(
            event_type=UsageEventType.PAGE_REQUEST,
            user_id="user-1",
            session_id="sess-1",
            target_url="https://example.com",
            bytes_transferred=512,
            response_time_ms=33,
            status_code=200,
            metadata={"method": "GET"},
        ))
        [row] = seed.logs()
        assert row.event_type == "page_request"
        assert row.bytes_transferred == 512
        assert row.status_code == 200
        assert row.meta == {"method": "GET"}

    def test_error_entry_for_unknown_session(self, seed, log_sink):
        log_sink.append_usage_log(UsageLogEntry(event_type=UsageEventType.ERROR, session_id="never-existed"))
        [row] = seed.logs("error")
        assert row.session_id == "never-existed"
        assert row.user_id is None


def test_store_ping(quota_store):
    assert quota_store.ping() is True
