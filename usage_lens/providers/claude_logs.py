"""
Claude account provider backed by local log files.

Reads the precomputed `stats-cache.json` aggregate and the per-session
JSON-Lines logs under `projects/` from a Claude configuration directory.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from usage_lens.core.activity import (
    DAILY_INPUT_SHARE_PERCENT,
    as_count,
    file_is_recent,
    split_tokens,
)
from usage_lens.core.models import DailyUsage, ModelUsage, Session, UsageStats
from usage_lens.core.pricing import estimate_cost, sum_costs
from usage_lens.providers.base import Provider

logger = logging.getLogger(__name__)

STATS_CACHE_FILE = "stats-cache.json"
PROJECTS_DIR = "projects"
SESSION_GLOB = "**/*.jsonl"
UNKNOWN = "unknown"


@dataclass
class StatsCache:
    """Parsed content of the aggregate stats file."""
    model_usage: Dict[str, ModelUsage] = field(default_factory=dict)
    total_sessions: int = 0
    total_messages: int = 0
    # date -> (session_count, message_count)
    daily_activity: Dict[str, Tuple[int, int]] = field(default_factory=dict)
    # list of (date, combined tokens across models)
    daily_tokens: List[Tuple[str, int]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatsCache":
        """Build from the decoded JSON object.

        Raises:
            ValueError, TypeError, AttributeError: If the layout is unexpected
        """
        if not isinstance(data, dict):
            raise ValueError("stats cache root must be an object")

        model_usage = {}
        for model, raw in (data.get("modelUsage") or {}).items():
            model_usage[model] = ModelUsage(
                model=model,
                input_tokens=as_count(raw.get("inputTokens")),
                output_tokens=as_count(raw.get("outputTokens")),
                cache_read_tokens=as_count(raw.get("cacheReadInputTokens")),
                cache_write_tokens=as_count(raw.get("cacheCreationInputTokens")),
            )

        daily_activity = {}
        for entry in data.get("dailyActivity") or []:
            daily_activity[str(entry.get("date") or "")] = (
                as_count(entry.get("sessionCount")),
                as_count(entry.get("messageCount")),
            )

        daily_tokens = []
        for entry in data.get("dailyModelTokens") or []:
            by_model = entry.get("tokensByModel") or {}
            total = sum(as_count(v) for v in by_model.values())
            daily_tokens.append((str(entry.get("date") or ""), total))

        return cls(
            model_usage=model_usage,
            total_sessions=as_count(data.get("totalSessions")),
            total_messages=as_count(data.get("totalMessages")),
            daily_activity=daily_activity,
            daily_tokens=daily_tokens,
        )


class ClaudeLogProvider(Provider):
    """Usage derived from a local Claude configuration directory."""

    def __init__(self, config_dir: Union[str, Path], name: str = "Claude"):
        self.config_dir = Path(config_dir)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def provider_type(self) -> str:
        return "claude"

    @property
    def source_location(self) -> str:
        return str(self.config_dir)

    def read_stats_cache(self) -> Optional[StatsCache]:
        """Load the aggregate file; None when missing or malformed."""
        path = self.config_dir / STATS_CACHE_FILE
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return StatsCache.from_dict(data)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.debug("Ignoring unreadable stats cache %s: %s", path, e)
            return None

    def find_session_files(self) -> List[Path]:
        """All session logs under projects/, in path order."""
        projects_dir = self.config_dir / PROJECTS_DIR
        if not projects_dir.is_dir():
            return []
        return sorted(p for p in projects_dir.glob(SESSION_GLOB) if p.is_file())

    def parse_session_file(self, path: Path) -> Optional[Session]:
        """Aggregate one JSON-Lines session log.

        Only assistant turns carrying usage count as messages. The reported
        model is the one from the last assistant turn.

        Returns:
            Session, or None when the file has no qualifying messages
        """
        total_tokens = 0
        message_count = 0
        last_model = ""
        last_timestamp = ""
        session_id = ""

        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                for line_number, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entry = json.loads(line)
                    except ValueError:
                        logger.debug("Skipping malformed line %d in %s", line_number, path)
                        continue
                    if not isinstance(entry, dict):
                        continue

                    if not session_id and isinstance(entry.get("sessionId"), str):
                        session_id = entry["sessionId"]
                    if isinstance(entry.get("timestamp"), str):
                        last_timestamp = entry["timestamp"]

                    if entry.get("type") != "assistant":
                        continue
                    message = entry.get("message")
                    if not isinstance(message, dict):
                        continue
                    if isinstance(message.get("model"), str):
                        last_model = message["model"]
                    usage = message.get("usage")
                    if not isinstance(usage, dict):
                        continue
                    try:
                        total_tokens += (
                            as_count(usage.get("input_tokens"))
                            + as_count(usage.get("output_tokens"))
                            + as_count(usage.get("cache_read_input_tokens"))
                            + as_count(usage.get("cache_creation_input_tokens"))
                        )
                    except ValueError:
                        logger.debug("Skipping bad usage on line %d in %s", line_number, path)
                        continue
                    message_count += 1
        except OSError as e:
            logger.debug("Cannot read session file %s: %s", path, e)
            return None

        if message_count == 0:
            return None

        # Session files live under projects/<encoded-path>/<uuid>.jsonl
        return Session(
            id=session_id or path.stem or UNKNOWN,
            project=path.parent.name or UNKNOWN,
            model=last_model or UNKNOWN,
            tokens_used=total_tokens,
            last_active=last_timestamp,
            is_active=file_is_recent(path),
            message_count=message_count,
        )

    def get_usage_stats(self) -> UsageStats:
        cache = self.read_stats_cache()
        if cache is None:
            return UsageStats.empty(self.name)

        stats = UsageStats(
            provider=self.name,
            total_sessions=cache.total_sessions,
            total_messages=cache.total_messages,
        )
        for model_name, usage in cache.model_usage.items():
            usage.cost_usd = estimate_cost(
                "claude",
                model_name,
                usage.input_tokens,
                usage.output_tokens,
                usage.cache_read_tokens,
                usage.cache_write_tokens,
            )
            stats.total_input_tokens += usage.input_tokens
            stats.total_output_tokens += usage.output_tokens
            stats.total_cache_read_tokens += usage.cache_read_tokens
            stats.total_cache_write_tokens += usage.cache_write_tokens
            stats.model_breakdown[model_name] = usage

        stats.estimated_cost_usd = sum_costs(
            u.cost_usd for u in stats.model_breakdown.values()
        )
        return stats

    def get_active_sessions(self) -> List[Session]:
        sessions = []
        for path in self.find_session_files():
            # mtime check first, parsing is the expensive part
            if not file_is_recent(path):
                continue
            session = self.parse_session_file(path)
            if session is not None:
                sessions.append(session)
        return sessions

    def get_daily_usage(self, days: int) -> List[DailyUsage]:
        cache = self.read_stats_cache()
        if cache is None or days <= 0:
            return []

        # The cache only keeps combined totals, so input/output is estimated
        token_map: Dict[str, List[int]] = {}
        for date, total in cache.daily_tokens:
            input_est, output_est = split_tokens(total, DAILY_INPUT_SHARE_PERCENT)
            bucket = token_map.setdefault(date, [0, 0])
            bucket[0] += input_est
            bucket[1] += output_est

        dates = sorted(set(token_map) | set(cache.daily_activity), reverse=True)[:days]

        daily = []
        for date in dates:
            input_tokens, output_tokens = token_map.get(date, (0, 0))
            sessions, messages = cache.daily_activity.get(date, (0, 0))
            daily.append(DailyUsage(
                date=date,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                sessions=sessions,
                messages=messages,
            ))
        return daily

    def get_session_history(self, limit: int) -> List[Session]:
        if limit <= 0:
            return []

        timed_files = []
        for path in self.find_session_files():
            try:
                timed_files.append((path.stat().st_mtime, path))
            except OSError:
                continue
        timed_files.sort(key=lambda item: item[0], reverse=True)

        sessions = []
        for _, path in timed_files[:limit]:
            session = self.parse_session_file(path)
            if session is not None:
                sessions.append(session)
        return sessions
