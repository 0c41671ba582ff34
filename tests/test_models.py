"""
Unit tests for the normalized usage model.
"""

from usage_lens.core.models import (
    DailyUsage,
    ModelUsage,
    RateLimitStatus,
    RateLimitWindow,
    Session,
    UsageStats,
)


class TestUsageStats:
    """Test UsageStats helpers and serialization."""

    def test_empty_stats(self):
        """Verify empty stats are all zero."""
        stats = UsageStats.empty("Claude")
        assert stats.provider == "Claude"
        assert stats.total_tokens == 0
        assert stats.estimated_cost_usd == 0.0
        assert stats.model_breakdown == {}

    def test_total_tokens_includes_cache(self):
        stats = UsageStats(
            provider="Claude",
            total_input_tokens=1,
            total_output_tokens=2,
            total_cache_read_tokens=3,
            total_cache_write_tokens=4,
        )
        assert stats.total_tokens == 10

    def test_to_dict_uses_camel_case(self):
        """Verify the serialized shape matches what the UI reads."""
        stats = UsageStats(provider="Claude", total_input_tokens=5, estimated_cost_usd=1.5)
        stats.model_breakdown["opus"] = ModelUsage(model="opus", input_tokens=5, cost_usd=1.5)

        data = stats.to_dict()

        assert data["totalInputTokens"] == 5
        assert data["estimatedCostUsd"] == 1.5
        assert data["modelBreakdown"]["opus"]["inputTokens"] == 5
        assert data["modelBreakdown"]["opus"]["costUsd"] == 1.5


class TestSessionAndDaily:
    """Test Session and DailyUsage serialization."""

    def test_session_to_dict(self):
        session = Session(
            id="abc",
            project="proj",
            model="opus",
            tokens_used=100,
            last_active="2025-01-01T00:00:00Z",
            is_active=True,
            message_count=3,
        )
        data = session.to_dict()
        assert data["tokensUsed"] == 100
        assert data["isActive"] is True
        assert data["messageCount"] == 3
        assert data["lastActive"] == "2025-01-01T00:00:00Z"

    def test_daily_defaults(self):
        day = DailyUsage(date="2025-01-01")
        assert day.to_dict() == {
            "date": "2025-01-01",
            "inputTokens": 0,
            "outputTokens": 0,
            "sessions": 0,
            "messages": 0,
        }


class TestRateLimitStatus:
    """Test rate limit status values."""

    def test_unavailable(self):
        status = RateLimitStatus.unavailable()
        assert status.available is False
        assert status.windows == []
        assert status.to_dict()["fiveHour"] is None

    def test_windows_skip_missing(self):
        window = RateLimitWindow("Time Limit", 12.5, "2025-01-01T00:00:00+00:00")
        status = RateLimitStatus(available=True, seven_day=window)
        assert status.windows == [window]
        assert status.to_dict()["sevenDay"]["resetsAt"] == "2025-01-01T00:00:00+00:00"
