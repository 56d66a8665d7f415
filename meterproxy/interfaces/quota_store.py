"""
Session / quota store interface.

Reads sessions and balances, and performs the two atomic writes the proxy is
allowed to make: expiring a session and bumping its usage counters.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..schemas import ProxySession, UserQuota


class QuotaStore(ABC):
    """Abstract session/quota store"""

    @abstractmethod
    def get_active_session(self, session_id: str) -> Optional[ProxySession]:
        """
        Fetch a session only if it exists and is still active.

        Returns:
            The session, or None when it is unknown or no longer active
        """
        pass

    @abstractmethod
    def get_user_quota(self, user_id: str) -> Optional[UserQuota]:
        """Balance and subscription view of a user, or None if the user is unknown"""
        pass

    @abstractmethod
    def expire_session(self, session_id: str, reason: str) -> bool:
        """
        Move an active session to 'expired' in one conditional update.

        Args:
            session_id: Session to expire
            reason: Stored as the session's error message

        Returns:
            True if this call performed the transition, False if the session
            was already out of the active state
        """
        pass

    @abstractmethod
    def increment_session_metrics(self, session_id: str, bytes_transferred: int, response_time_ms: int) -> bool:
        """
        Add one request and ``bytes_transferred`` bytes to an active session.

        Returns:
            True if the counters moved, False if the session is not active
        """
        pass

    def ping(self) -> bool:
        """
        Round trip to the backing store, for health checks.

        Raises whatever the backend raises when it is unreachable. Stores with
        nothing behind them are always reachable.
        """
        return True
