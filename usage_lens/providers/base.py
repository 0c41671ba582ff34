"""
Provider contract.

Every data source (local logs, embedded database, remote API) implements
this interface and answers with the normalized usage model.
"""

from abc import ABC, abstractmethod
from typing import List

from usage_lens.core.models import DailyUsage, RateLimitStatus, Session, UsageStats


class Provider(ABC):
    """Abstract usage source for one configured profile."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name, also used as the UsageStats provider label."""

    @property
    @abstractmethod
    def provider_type(self) -> str:
        """Provider family tag ("claude", "gemini", "zai")."""

    @property
    @abstractmethod
    def source_location(self) -> str:
        """Directory, database file or API base URL the data comes from."""

    @abstractmethod
    def get_usage_stats(self) -> UsageStats:
        """
        Cumulative token usage and estimated cost.

        Returns:
            UsageStats, all-zero when the source does not exist yet

        Raises:
            ProviderError: If a remote or database query fails
        """

    @abstractmethod
    def get_active_sessions(self) -> List[Session]:
        """Sessions with activity in the last 30 minutes."""

    @abstractmethod
    def get_daily_usage(self, days: int) -> List[DailyUsage]:
        """
        Per-date usage, newest first.

        Args:
            days: Maximum number of dates to return

        Returns:
            At most `days` entries sorted descending by date
        """

    @abstractmethod
    def get_session_history(self, limit: int) -> List[Session]:
        """
        Most recent sessions, newest first.

        Args:
            limit: Maximum number of sessions to return; fewer may come
                back when some sources turn out to hold no session
        """

    def get_rate_limit_status(self) -> RateLimitStatus:
        """Quota telemetry; only some remote providers expose it."""
        return RateLimitStatus.unavailable()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, source={self.source_location!r})"
