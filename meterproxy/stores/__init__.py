from .sql import SqlQuotaStore, SqlUsageLogSink

__all__ = ["SqlQuotaStore", "SqlUsageLogSink"]
