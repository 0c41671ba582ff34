"""
Normalized usage model.

Every provider, whatever its data source, answers with these types.
`to_dict()` produces the camelCase shape consumed by the host UI.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ModelUsage:
    """Token counts and cost attributed to a single model."""
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    cost_usd: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "cacheReadTokens": self.cache_read_tokens,
            "cacheWriteTokens": self.cache_write_tokens,
            "costUsd": self.cost_usd,
        }


@dataclass
class UsageStats:
    """Cumulative usage for one provider over its reporting window."""
    provider: str
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cache_read_tokens: int = 0
    total_cache_write_tokens: int = 0
    total_sessions: int = 0
    total_messages: int = 0
    estimated_cost_usd: float = 0.0
    model_breakdown: Dict[str, ModelUsage] = field(default_factory=dict)

    @classmethod
    def empty(cls, provider: str) -> "UsageStats":
        """All-zero stats, used when a source does not exist yet."""
        return cls(provider=provider)

    @property
    def total_tokens(self) -> int:
        return (
            self.total_input_tokens
            + self.total_output_tokens
            + self.total_cache_read_tokens
            + self.total_cache_write_tokens
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "totalInputTokens": self.total_input_tokens,
            "totalOutputTokens": self.total_output_tokens,
            "totalCacheReadTokens": self.total_cache_read_tokens,
            "totalCacheWriteTokens": self.total_cache_write_tokens,
            "totalSessions": self.total_sessions,
            "totalMessages": self.total_messages,
            "estimatedCostUsd": self.estimated_cost_usd,
            "modelBreakdown": {
                name: usage.to_dict() for name, usage in self.model_breakdown.items()
            },
        }


@dataclass
class Session:
    """A single assistant session reconstructed from its source."""
    id: str
    project: str
    model: str
    tokens_used: int
    last_active: str  # ISO-8601, as found in the source
    is_active: bool
    message_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project": self.project,
            "model": self.model,
            "tokensUsed": self.tokens_used,
            "lastActive": self.last_active,
            "isActive": self.is_active,
            "messageCount": self.message_count,
        }


@dataclass
class DailyUsage:
    """Usage rolled up to one calendar date (YYYY-MM-DD)."""
    date: str
    input_tokens: int = 0
    output_tokens: int = 0
    sessions: int = 0
    messages: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "sessions": self.sessions,
            "messages": self.messages,
        }


@dataclass(frozen=True)
class RateLimitWindow:
    """One named quota window; utilization is a percentage (0-100)."""
    label: str
    utilization: float
    resets_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "utilization": self.utilization,
            "resetsAt": self.resets_at,
        }


@dataclass(frozen=True)
class RateLimitStatus:
    """Quota telemetry. Providers without quota data report unavailable."""
    available: bool
    five_hour: Optional[RateLimitWindow] = None
    seven_day: Optional[RateLimitWindow] = None
    seven_day_opus: Optional[RateLimitWindow] = None

    @classmethod
    def unavailable(cls) -> "RateLimitStatus":
        return cls(available=False)

    @property
    def windows(self) -> List[RateLimitWindow]:
        return [
            w for w in (self.five_hour, self.seven_day, self.seven_day_opus)
            if w is not None
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": self.available,
            "fiveHour": self.five_hour.to_dict() if self.five_hour else None,
            "sevenDay": self.seven_day.to_dict() if self.seven_day else None,
            "sevenDayOpus": self.seven_day_opus.to_dict() if self.seven_day_opus else None,
        }
