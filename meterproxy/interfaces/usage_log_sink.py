"""
Usage log sink interface.

Append-only destination for page_request and error entries.
"""

from abc import ABC, abstractmethod

from ..schemas import UsageLogEntry


class UsageLogSink(ABC):
    """Abstract append-only usage log"""

    @abstractmethod
    def append_usage_log(self, entry: UsageLogEntry) -> None:
        """
        Persist one entry.

        Raises whatever the backend raises; callers decide whether a failed
        write matters.
        """
        pass
