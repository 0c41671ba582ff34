"""
Gemini account provider backed by local chat logs.

Sessions live under `tmp/<project-hash>/chats/` either as JSON-Lines logs
(`session-*.jsonl`) or as legacy whole-file JSON documents (`session-*.json`).
Token counts are per session only, so input/output splits are estimated.
"""

import json
import logging
import os
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Union

from usage_lens.core.activity import (
    SESSION_INPUT_SHARE_PERCENT,
    as_count,
    file_is_recent,
    split_tokens,
)
from usage_lens.core.models import DailyUsage, ModelUsage, Session, UsageStats
from usage_lens.core.pricing import estimate_cost, sum_costs
from usage_lens.providers.base import Provider

logger = logging.getLogger(__name__)

HOME_ENV_VAR = "GEMINI_CLI_HOME"
UNKNOWN_MODEL = "gemini-unknown"
UNKNOWN = "unknown"


def _tokens(value) -> tuple:
    """(input, output) from a `tokens` object; raises ValueError if malformed."""
    if not isinstance(value, dict):
        raise ValueError(f"Expected a tokens object, got {value!r}")
    return as_count(value.get("input")), as_count(value.get("output"))


def _project_of(path: Path) -> str:
    # tmp/<hash>/chats/<file>
    return path.parent.parent.name or UNKNOWN


class GeminiLogProvider(Provider):
    """Usage derived from a local Gemini CLI directory."""

    def __init__(self, config_dir: Union[str, Path], name: str = "Gemini"):
        self.config_dir = Path(config_dir)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def provider_type(self) -> str:
        return "gemini"

    @property
    def source_location(self) -> str:
        return str(self.effective_dir())

    def effective_dir(self) -> Path:
        """The environment override wins over the profile directory."""
        override = os.environ.get(HOME_ENV_VAR)
        return Path(override) if override else self.config_dir

    def _chat_files(self, pattern: str) -> List[Path]:
        base = self.effective_dir() / "tmp"
        if not base.is_dir():
            return []
        return sorted(p for p in base.glob(f"*/chats/{pattern}") if p.is_file())

    def find_session_jsonl_files(self) -> List[Path]:
        return self._chat_files("session-*.jsonl")

    def find_legacy_session_files(self) -> List[Path]:
        return [p for p in self._chat_files("session-*.json") if p.suffix == ".json"]

    def parse_jsonl_session(self, path: Path) -> Optional[Session]:
        """Aggregate a JSON-Lines chat log; None when no record carries tokens."""
        total_input = 0
        total_output = 0
        message_count = 0
        last_model = ""
        last_timestamp = ""

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

                    if isinstance(entry.get("timestamp"), str):
                        last_timestamp = entry["timestamp"]
                    if isinstance(entry.get("model"), str):
                        last_model = entry["model"]
                    if entry.get("tokens") is None:
                        continue
                    try:
                        input_tokens, output_tokens = _tokens(entry["tokens"])
                    except ValueError:
                        logger.debug("Skipping bad tokens on line %d in %s", line_number, path)
                        continue
                    total_input += input_tokens
                    total_output += output_tokens
                    message_count += 1
        except OSError as e:
            logger.debug("Cannot read session file %s: %s", path, e)
            return None

        if message_count == 0:
            return None

        return Session(
            id=path.stem or UNKNOWN,
            project=_project_of(path),
            model=last_model or UNKNOWN_MODEL,
            tokens_used=total_input + total_output,
            last_active=last_timestamp,
            is_active=file_is_recent(path),
            message_count=message_count,
        )

    def parse_legacy_session(self, path: Path) -> Optional[Session]:
        """Aggregate a legacy JSON session document; None if unusable."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            messages = data.get("messages") or []
            total = 0
            for message in messages:
                if message.get("tokens") is not None:
                    input_tokens, output_tokens = _tokens(message["tokens"])
                    total += input_tokens + output_tokens
            model = data.get("model")
            created_at = data.get("createdAt")
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.debug("Skipping unreadable legacy session %s: %s", path, e)
            return None

        if not messages:
            return None

        return Session(
            id=path.stem or UNKNOWN,
            project=_project_of(path),
            model=model if isinstance(model, str) and model else UNKNOWN_MODEL,
            tokens_used=total,
            last_active=created_at if isinstance(created_at, str) else "",
            is_active=file_is_recent(path),
            message_count=len(messages),
        )

    def all_sessions(self) -> List[Session]:
        """Sessions from both storage formats."""
        sessions = []
        for path in self.find_session_jsonl_files():
            session = self.parse_jsonl_session(path)
            if session is not None:
                sessions.append(session)
        for path in self.find_legacy_session_files():
            session = self.parse_legacy_session(path)
            if session is not None:
                sessions.append(session)
        return sessions

    def get_usage_stats(self) -> UsageStats:
        sessions = self.all_sessions()
        stats = UsageStats(provider=self.name, total_sessions=len(sessions))

        for session in sessions:
            input_est, output_est = split_tokens(session.tokens_used, SESSION_INPUT_SHARE_PERCENT)
            stats.total_input_tokens += input_est
            stats.total_output_tokens += output_est
            stats.total_messages += session.message_count

            usage = stats.model_breakdown.setdefault(session.model, ModelUsage(model=session.model))
            usage.input_tokens += input_est
            usage.output_tokens += output_est

        for usage in stats.model_breakdown.values():
            usage.cost_usd = estimate_cost("gemini", usage.model, usage.input_tokens, usage.output_tokens)
        stats.estimated_cost_usd = sum_costs(u.cost_usd for u in stats.model_breakdown.values())
        return stats

    def get_active_sessions(self) -> List[Session]:
        return [s for s in self.all_sessions() if s.is_active]

    def get_daily_usage(self, days: int) -> List[DailyUsage]:
        if days <= 0:
            return []

        by_date: Dict[str, DailyUsage] = defaultdict(lambda: DailyUsage(date=""))
        for session in self.all_sessions():
            if len(session.last_active) < 10:
                continue
            date = session.last_active[:10]
            input_est, output_est = split_tokens(session.tokens_used, SESSION_INPUT_SHARE_PERCENT)
            entry = by_date[date]
            entry.date = date
            entry.input_tokens += input_est
            entry.output_tokens += output_est
            entry.sessions += 1
            entry.messages += session.message_count

        daily = sorted(by_date.values(), key=lambda d: d.date, reverse=True)
        return daily[:days]

    def get_session_history(self, limit: int) -> List[Session]:
        if limit <= 0:
            return []
        sessions = sorted(self.all_sessions(), key=lambda s: s.last_active, reverse=True)
        return sessions[:limit]
