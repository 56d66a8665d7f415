"""
Collaborator interfaces for the proxy core.

The pipeline depends only on these capability contracts; the SQL-backed
implementations live in ``meterproxy.stores``.
"""

from .quota_store import QuotaStore
from .usage_log_sink import UsageLogSink

__all__ = [
    'QuotaStore',
    'UsageLogSink',
]
