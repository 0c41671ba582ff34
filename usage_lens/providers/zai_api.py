"""
z.ai provider backed by the z.ai monitoring API.

Exposes quota utilization (the only provider with rate-limit telemetry) and
a rolling 24 hour per-model usage summary. The API has no daily breakdown
and no session tracking.
"""

import copy
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests

from usage_lens.core.activity import as_count
from usage_lens.core.cache import TTLCache
from usage_lens.core.exceptions import ProviderError, ProviderTimeoutError
from usage_lens.core.models import (
    DailyUsage,
    ModelUsage,
    RateLimitStatus,
    RateLimitWindow,
    Session,
    UsageStats,
)
from usage_lens.core.pricing import estimate_cost, sum_costs
from usage_lens.providers.base import Provider

logger = logging.getLogger(__name__)

API_BASE = "https://api.z.ai"
QUOTA_LIMIT_PATH = "/api/monitor/usage/quota/limit"
MODEL_USAGE_PATH = "/api/monitor/usage/model-usage"
REQUEST_TIMEOUT_SECONDS = 15
CACHE_TTL_SECONDS = 60.0
USAGE_WINDOW = timedelta(hours=24)


def _reset_time(epoch_ms: Any) -> Optional[str]:
    """ISO-8601 UTC string for an epoch-milliseconds reset time."""
    if epoch_ms is None or isinstance(epoch_ms, bool) or not isinstance(epoch_ms, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def parse_quota_limits(payload: Any) -> RateLimitStatus:
    """Map a quota response to token and time windows.

    Utilization arrives as a 0-1 fraction and is rescaled to a percentage.
    Items whose type mentions neither TOKEN nor TIME are ignored.
    """
    if not isinstance(payload, dict):
        return RateLimitStatus.unavailable()
    limits = payload.get("limits")
    if not isinstance(limits, list) or not limits:
        return RateLimitStatus.unavailable()

    token_window = None
    time_window = None
    for item in limits:
        if not isinstance(item, dict):
            continue
        limit_type = str(item.get("type") or "")
        percentage = item.get("percentage") or 0
        if isinstance(percentage, bool) or not isinstance(percentage, (int, float)):
            logger.debug("Skipping quota item with bad percentage: %r", item)
            continue
        resets_at = _reset_time(item.get("nextResetTime"))

        if "TOKEN" in limit_type:
            token_window = RateLimitWindow("Token Limit", percentage * 100.0, resets_at)
        elif "TIME" in limit_type:
            time_window = RateLimitWindow("Time Limit", percentage * 100.0, resets_at)

    return RateLimitStatus(
        available=token_window is not None or time_window is not None,
        five_hour=token_window,
        seven_day=time_window,
    )


class ZaiApiProvider(Provider):
    """Quota and usage for a z.ai API key."""

    def __init__(
        self,
        api_key: str,
        name: str = "z.ai",
        base_url: str = API_BASE,
        session: Optional[requests.Session] = None,
        cache_ttl: float = CACHE_TTL_SECONDS,
    ):
        self._api_key = api_key
        self._name = name
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.usage_cache: TTLCache[UsageStats] = TTLCache(cache_ttl)

    @property
    def name(self) -> str:
        return self._name

    @property
    def provider_type(self) -> str:
        return "zai"

    @property
    def source_location(self) -> str:
        return self.base_url

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        try:
            response = self.session.get(
                f"{self.base_url}{path}",
                headers={
                    "Authorization": self._api_key,
                    "Accept-Language": "en-US,en",
                    "Content-Type": "application/json",
                },
                params=params,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.Timeout as e:
            raise ProviderTimeoutError(f"z.ai request timed out: {e}") from e
        except requests.RequestException as e:
            raise ProviderError(f"z.ai request failed: {e}") from e

        if not response.ok:
            raise ProviderError(f"z.ai API error {response.status_code}: {response.text}")
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"Failed to parse z.ai response: {e}") from e

    def get_rate_limit_status(self) -> RateLimitStatus:
        """Live quota status; never cached, never raises."""
        try:
            payload = self._get(QUOTA_LIMIT_PATH)
        except ProviderError as e:
            logger.warning("Quota status unavailable for %s: %s", self.name, e)
            return RateLimitStatus.unavailable()
        return parse_quota_limits(payload)

    def fetch_model_usage(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Per-model usage rows for the trailing 24 hours.

        Raises:
            ProviderError: On transport or schema failure
        """
        if now is None:
            now = datetime.now(timezone.utc)
        start = now - USAGE_WINDOW
        payload = self._get(MODEL_USAGE_PATH, params={
            "startTime": start.strftime("%Y-%m-%d %H:00:00"),
            "endTime": now.strftime("%Y-%m-%d %H:59:59"),
        })
        if not isinstance(payload, dict):
            raise ProviderError("Failed to parse model usage: expected an object")
        data = payload.get("data") or []
        if not isinstance(data, list):
            raise ProviderError("Failed to parse model usage: 'data' must be a list")
        return data

    def _build_usage_stats(self) -> UsageStats:
        stats = UsageStats(provider=self.name)
        for entry in self.fetch_model_usage():
            try:
                model = str(entry.get("modelName") or "unknown")
                input_tokens = as_count(entry.get("inputTokens"))
                output_tokens = as_count(entry.get("outputTokens"))
                calls = as_count(entry.get("callCount"))
            except (AttributeError, ValueError):
                logger.debug("Skipping malformed model usage entry: %r", entry)
                continue

            stats.total_input_tokens += input_tokens
            stats.total_output_tokens += output_tokens
            stats.total_messages += calls

            usage = stats.model_breakdown.setdefault(model, ModelUsage(model=model))
            usage.input_tokens += input_tokens
            usage.output_tokens += output_tokens

        for usage in stats.model_breakdown.values():
            usage.cost_usd = estimate_cost("zai", usage.model, usage.input_tokens, usage.output_tokens)
        stats.estimated_cost_usd = sum_costs(u.cost_usd for u in stats.model_breakdown.values())
        return stats

    def get_usage_stats(self) -> UsageStats:
        cached = self.usage_cache.get()
        if cached is None:
            cached = self._build_usage_stats()
            self.usage_cache.set(cached)
        return copy.deepcopy(cached)

    def get_active_sessions(self) -> List[Session]:
        return []

    def get_daily_usage(self, days: int) -> List[DailyUsage]:
        # Only a rolling 24h window is exposed
        return []

    def get_session_history(self, limit: int) -> List[Session]:
        return []
