"""
Claude provider backed by the Anthropic Admin usage and cost reports.

Requires an Admin API key. Both reports are paginated; results are cached
for a short time so dashboards polling every few seconds do not hammer the
API.
"""

import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

import requests

from usage_lens.core.cache import TTLCache
from usage_lens.core.exceptions import ProviderError, ProviderTimeoutError
from usage_lens.core.models import DailyUsage, ModelUsage, Session, UsageStats
from usage_lens.core.pricing import round_usd
from usage_lens.providers.base import Provider

logger = logging.getLogger(__name__)

API_BASE = "https://api.anthropic.com"
USAGE_REPORT_PATH = "/v1/organizations/usage_report/messages"
COST_REPORT_PATH = "/v1/organizations/cost_report"
ANTHROPIC_VERSION = "2023-06-01"

PAGE_SIZE = 31
USAGE_WINDOW_DAYS = 30
REPORT_TIMEOUT_SECONDS = 30
VALIDATION_TIMEOUT_SECONDS = 10
CACHE_TTL_SECONDS = 60.0


@dataclass
class UsageResult:
    """One per-model row inside a usage bucket."""
    model: str
    uncached_input_tokens: int
    output_tokens: int
    cache_read_input_tokens: int
    cache_write_tokens: int  # 5m + 1h cache creation windows

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageResult":
        cache_creation = data.get("cache_creation") or {}
        return cls(
            model=data.get("model") or "unknown",
            uncached_input_tokens=_count(data, "uncached_input_tokens"),
            output_tokens=_count(data, "output_tokens"),
            cache_read_input_tokens=_count(data, "cache_read_input_tokens"),
            cache_write_tokens=(
                _count(cache_creation, "ephemeral_5m_input_tokens")
                + _count(cache_creation, "ephemeral_1h_input_tokens")
            ),
        )

    @property
    def has_activity(self) -> bool:
        """The report has no call count; any input or output implies a call."""
        return self.uncached_input_tokens > 0 or self.output_tokens > 0


@dataclass
class UsageBucket:
    """One time window of the usage report."""
    starting_at: str
    ending_at: str
    results: List[UsageResult]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageBucket":
        return cls(
            starting_at=_string(data, "starting_at"),
            ending_at=_string(data, "ending_at"),
            results=[UsageResult.from_dict(r) for r in _list(data, "results")],
        )

    @property
    def date(self) -> str:
        return self.starting_at.split("T", 1)[0]


def _count(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer, got {value!r}")
    return value


def _string(data: Dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data[key]
    if not isinstance(value, list):
        raise ValueError(f"'{key}' must be a list")
    return value


def _page_info(report: Dict[str, Any]) -> Optional[str]:
    """Continuation cursor of a report page, None on the last page."""
    if not report.get("has_more"):
        return None
    next_page = report.get("next_page")
    if not next_page:
        raise ValueError("has_more is set but next_page is missing")
    return str(next_page)


def _report_window(days: int, now: Optional[datetime] = None) -> Tuple[str, str]:
    """(starting_at, ending_at) covering whole UTC days back to `days` ago."""
    if now is None:
        now = datetime.now(timezone.utc)
    start = now - timedelta(days=days)
    return start.strftime("%Y-%m-%dT00:00:00Z"), now.strftime("%Y-%m-%dT23:59:59Z")


def _headers(api_key: str) -> Dict[str, str]:
    return {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION}


class ClaudeApiProvider(Provider):
    """Usage and cost for an Anthropic organization."""

    def __init__(
        self,
        api_key: str,
        name: str = "Claude (API)",
        base_url: str = API_BASE,
        session: Optional[requests.Session] = None,
        cache_ttl: float = CACHE_TTL_SECONDS,
    ):
        self._api_key = api_key
        self._name = name
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.usage_cache: TTLCache[UsageStats] = TTLCache(cache_ttl)
        self.daily_cache: TTLCache[List[DailyUsage]] = TTLCache(cache_ttl)

    @property
    def name(self) -> str:
        return self._name

    @property
    def provider_type(self) -> str:
        return "claude"

    @property
    def source_location(self) -> str:
        return self.base_url

    def _get_page(self, path: str, params: List[Tuple[str, str]], label: str) -> Dict[str, Any]:
        try:
            response = self.session.get(
                f"{self.base_url}{path}",
                headers=_headers(self._api_key),
                params=params,
                timeout=REPORT_TIMEOUT_SECONDS,
            )
        except requests.Timeout as e:
            raise ProviderTimeoutError(f"{label} request timed out: {e}") from e
        except requests.RequestException as e:
            raise ProviderError(f"{label} request failed: {e}") from e

        if not response.ok:
            raise ProviderError(f"{label} error {response.status_code}: {response.text}")

        try:
            report = response.json()
        except ValueError as e:
            raise ProviderError(f"Failed to parse {label.lower()}: {e}") from e
        if not isinstance(report, dict):
            raise ProviderError(f"Failed to parse {label.lower()}: expected an object")
        return report

    def fetch_usage_report(self, starting_at: str, ending_at: str,
                           group_by_model: bool) -> List[UsageBucket]:
        """Fetch every page of the usage report.

        Raises:
            ProviderError: On any transport, status or schema failure; pages
                already fetched are discarded
        """
        buckets: List[UsageBucket] = []
        page: Optional[str] = None

        while True:
            params = [
                ("starting_at", starting_at),
                ("ending_at", ending_at),
                ("bucket_width", "1d"),
                ("limit", str(PAGE_SIZE)),
            ]
            if group_by_model:
                params.append(("group_by[]", "model"))
            if page is not None:
                params.append(("page", page))

            report = self._get_page(USAGE_REPORT_PATH, params, "Usage API")
            try:
                buckets.extend(UsageBucket.from_dict(b) for b in _list(report, "data"))
                page = _page_info(report)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise ProviderError(f"Failed to parse usage report: {e}") from e

            if page is None:
                return buckets

    def fetch_cost_report(self, starting_at: str, ending_at: str) -> float:
        """Total cost in USD across every page of the cost report.

        Amounts arrive as strings in cents; unparseable amounts are skipped.

        Raises:
            ProviderError: On any transport, status or schema failure
        """
        total_cents = Decimal("0")
        page: Optional[str] = None

        while True:
            params = [
                ("starting_at", starting_at),
                ("ending_at", ending_at),
                ("bucket_width", "1d"),
                ("limit", str(PAGE_SIZE)),
            ]
            if page is not None:
                params.append(("page", page))

            report = self._get_page(COST_REPORT_PATH, params, "Cost API")
            try:
                for bucket in _list(report, "data"):
                    for result in _list(bucket, "results"):
                        try:
                            total_cents += Decimal(str(result["amount"]))
                        except (KeyError, InvalidOperation):
                            logger.debug("Skipping unparseable cost amount: %r", result)
                page = _page_info(report)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise ProviderError(f"Failed to parse cost report: {e}") from e

            if page is None:
                return round_usd(total_cents / 100)

    def _build_usage_stats(self) -> UsageStats:
        starting_at, ending_at = _report_window(USAGE_WINDOW_DAYS)
        buckets = self.fetch_usage_report(starting_at, ending_at, group_by_model=True)

        stats = UsageStats(provider=self.name)
        for bucket in buckets:
            for result in bucket.results:
                stats.total_input_tokens += result.uncached_input_tokens
                stats.total_output_tokens += result.output_tokens
                stats.total_cache_read_tokens += result.cache_read_input_tokens
                stats.total_cache_write_tokens += result.cache_write_tokens

                # Per-model cost is not available from the cost report
                usage = stats.model_breakdown.setdefault(result.model, ModelUsage(model=result.model))
                usage.input_tokens += result.uncached_input_tokens
                usage.output_tokens += result.output_tokens
                usage.cache_read_tokens += result.cache_read_input_tokens
                usage.cache_write_tokens += result.cache_write_tokens

                if result.has_activity:
                    stats.total_messages += 1

        try:
            stats.estimated_cost_usd = self.fetch_cost_report(starting_at, ending_at)
        except ProviderError as e:
            logger.warning("Cost report unavailable for %s, reporting 0.00: %s", self.name, e)
        return stats

    def _build_daily_usage(self, days: int) -> List[DailyUsage]:
        starting_at, ending_at = _report_window(days)
        buckets = self.fetch_usage_report(starting_at, ending_at, group_by_model=False)

        daily = []
        for bucket in buckets:
            entry = DailyUsage(date=bucket.date)
            for result in bucket.results:
                entry.input_tokens += (
                    result.uncached_input_tokens
                    + result.cache_read_input_tokens
                    + result.cache_write_tokens
                )
                entry.output_tokens += result.output_tokens
                if result.has_activity:
                    entry.messages += 1
            daily.append(entry)

        daily.sort(key=lambda d: d.date, reverse=True)
        return daily

    def get_usage_stats(self) -> UsageStats:
        cached = self.usage_cache.get()
        if cached is None:
            cached = self._build_usage_stats()
            self.usage_cache.set(cached)
        return copy.deepcopy(cached)

    def get_daily_usage(self, days: int) -> List[DailyUsage]:
        if days <= 0:
            return []
        cached = self.daily_cache.get()
        if cached is None:
            cached = self._build_daily_usage(days)
            self.daily_cache.set(cached)
        return copy.deepcopy(cached[:days])

    def get_active_sessions(self) -> List[Session]:
        # The Admin API has no session concept
        return []

    def get_session_history(self, limit: int) -> List[Session]:
        return []


def validate_api_key(api_key: str, base_url: str = API_BASE,
                     session: Optional[requests.Session] = None) -> bool:
    """Check an Admin API key with a minimal usage report request.

    Returns:
        True if the API accepted the key

    Raises:
        ProviderError: If the request could not be completed
    """
    starting_at, ending_at = _report_window(1)
    http = session or requests
    try:
        response = http.get(
            f"{base_url.rstrip('/')}{USAGE_REPORT_PATH}",
            headers=_headers(api_key),
            params=[("starting_at", starting_at), ("ending_at", ending_at), ("limit", "1")],
            timeout=VALIDATION_TIMEOUT_SECONDS,
        )
    except requests.Timeout as e:
        raise ProviderTimeoutError(f"API validation request timed out: {e}") from e
    except requests.RequestException as e:
        raise ProviderError(f"API validation request failed: {e}") from e
    return response.ok
