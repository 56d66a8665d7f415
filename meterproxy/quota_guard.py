from __future__ import annotations

import logging

from .errors import InsufficientBalance, SessionInvalidOrExpired, UserNotFound
from .interfaces import QuotaStore

logger = logging.getLogger("meterproxy.quota")

INSUFFICIENT_BALANCE_REASON = "Insufficient time balance"


def check_quota(store: QuotaStore, session_id: str) -> str:
    """
    Gate an authenticated request on its session and the owner's entitlement.

    Returns the owning user id. A user with no minutes left and no active
    subscription gets the session expired (once; the store update is
    conditional on status = 'active') and ``InsufficientBalance`` raised.
    """
    session = store.get_active_session(session_id)
    if session is None:
        raise SessionInvalidOrExpired()

    quota = store.get_user_quota(session.user_id)
    if quota is None:
        logger.warning("session %s points at unknown user %s", session_id, session.user_id)
        raise UserNotFound()

    if not quota.allows_proxying():
        store.expire_session(session_id, INSUFFICIENT_BALANCE_REASON)
        raise InsufficientBalance(INSUFFICIENT_BALANCE_REASON)

    return session.user_id
