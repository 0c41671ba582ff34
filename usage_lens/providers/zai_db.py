"""
z.ai account provider backed by a local SQLite store.

The store is written by the z.ai client and opened read-only here. Expected
schema: `sessions(id, name, working_directory, created_at, updated_at)` and
`messages(session_id, model, input_tokens, output_tokens, created_at)`.
"""

import logging
import os
import sqlite3
from pathlib import Path
from typing import List, Optional, Union

from usage_lens.core.activity import timestamp_is_recent
from usage_lens.core.exceptions import ProviderError
from usage_lens.core.models import DailyUsage, ModelUsage, Session, UsageStats
from usage_lens.core.pricing import estimate_cost, sum_costs
from usage_lens.providers.base import Provider
from usage_lens.storage.db import get_connection

logger = logging.getLogger(__name__)

DB_PATH_ENV_VAR = "ZAI_CONFIG_PATH"
DB_FILE = "sessions.db"

_SESSION_COLUMNS = """
    SELECT s.id, s.name, s.working_directory,
           COALESCE(s.updated_at, s.created_at, '') AS last_active,
           COALESCE(m.model, 'unknown') AS model,
           COALESCE(m.total_tokens, 0) AS tokens_used,
           COALESCE(m.msg_count, 0) AS msg_count
    FROM sessions s
    LEFT JOIN (
        SELECT session_id,
               MAX(COALESCE(model, 'unknown')) AS model,
               SUM(COALESCE(input_tokens, 0) + COALESCE(output_tokens, 0)) AS total_tokens,
               COUNT(*) AS msg_count
        FROM messages GROUP BY session_id
    ) m ON s.id = m.session_id
"""

# Liveness here is judged by SQLite's own clock
ACTIVE_SESSIONS_QUERY = _SESSION_COLUMNS + """
    WHERE s.updated_at >= datetime('now', '-30 minutes')
    ORDER BY last_active DESC
"""

SESSION_HISTORY_QUERY = _SESSION_COLUMNS + """
    ORDER BY last_active DESC
    LIMIT ?
"""

USAGE_BY_MODEL_QUERY = """
    SELECT COALESCE(model, 'unknown'),
           COALESCE(SUM(input_tokens), 0),
           COALESCE(SUM(output_tokens), 0),
           COUNT(*)
    FROM messages
    GROUP BY COALESCE(model, 'unknown')
"""

DAILY_USAGE_QUERY = """
    SELECT DATE(m.created_at) AS date,
           COALESCE(SUM(m.input_tokens), 0),
           COALESCE(SUM(m.output_tokens), 0),
           COUNT(DISTINCT m.session_id),
           COUNT(*)
    FROM messages m
    WHERE m.created_at >= datetime('now', ?)
    GROUP BY DATE(m.created_at)
    ORDER BY date DESC
"""


def _session_from_row(row, is_active: bool) -> Session:
    """Map a session query row; raises ValueError/TypeError for unusable rows."""
    session_id, _name, working_directory, last_active, model, tokens, msg_count = row
    if session_id is None:
        raise ValueError("session row without id")
    return Session(
        id=str(session_id),
        project=working_directory or "",
        model=model or "unknown",
        tokens_used=int(tokens or 0),
        last_active=str(last_active or ""),
        is_active=is_active,
        message_count=int(msg_count or 0),
    )


class ZaiDatabaseProvider(Provider):
    """Usage derived from the z.ai client's local session database."""

    def __init__(self, config_dir: Union[str, Path], name: str = "z.ai"):
        self.config_dir = Path(config_dir)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def provider_type(self) -> str:
        return "zai"

    @property
    def source_location(self) -> str:
        return str(self.db_path())

    def db_path(self) -> Path:
        override = os.environ.get(DB_PATH_ENV_VAR)
        return Path(override) if override else self.config_dir / DB_FILE

    def _open(self) -> Optional[sqlite3.Connection]:
        try:
            return get_connection(self.db_path())
        except sqlite3.Error as e:
            raise ProviderError(f"Failed to open database: {e}") from e

    def get_usage_stats(self) -> UsageStats:
        conn = self._open()
        if conn is None:
            return UsageStats.empty(self.name)
        try:
            stats = UsageStats(provider=self.name)
            try:
                row = conn.execute("SELECT COUNT(*) FROM sessions").fetchone()
                stats.total_sessions = int(row[0] or 0)
                rows = conn.execute(USAGE_BY_MODEL_QUERY).fetchall()
            except sqlite3.Error as e:
                raise ProviderError(f"Failed to query messages: {e}") from e

            for model, input_tokens, output_tokens, count in rows:
                try:
                    usage = ModelUsage(
                        model=str(model),
                        input_tokens=int(input_tokens),
                        output_tokens=int(output_tokens),
                    )
                    count = int(count)
                except (TypeError, ValueError):
                    logger.debug("Skipping malformed usage row for model %r", model)
                    continue
                usage.cost_usd = estimate_cost("zai", usage.model, usage.input_tokens, usage.output_tokens)
                stats.total_input_tokens += usage.input_tokens
                stats.total_output_tokens += usage.output_tokens
                stats.total_messages += count
                stats.model_breakdown[usage.model] = usage

            stats.estimated_cost_usd = sum_costs(u.cost_usd for u in stats.model_breakdown.values())
            return stats
        finally:
            conn.close()

    def get_active_sessions(self) -> List[Session]:
        conn = self._open()
        if conn is None:
            return []
        try:
            try:
                rows = conn.execute(ACTIVE_SESSIONS_QUERY).fetchall()
            except sqlite3.Error as e:
                raise ProviderError(f"Failed to query sessions: {e}") from e
            return self._sessions_from_rows(rows, lambda last_active: True)
        finally:
            conn.close()

    def get_daily_usage(self, days: int) -> List[DailyUsage]:
        if days <= 0:
            return []
        conn = self._open()
        if conn is None:
            return []
        try:
            try:
                rows = conn.execute(DAILY_USAGE_QUERY, (f"-{int(days)} days",)).fetchall()
            except sqlite3.Error as e:
                raise ProviderError(f"Failed to query daily usage: {e}") from e

            daily = []
            for date, input_tokens, output_tokens, sessions, messages in rows:
                if date is None:
                    logger.debug("Skipping daily row with unparseable date")
                    continue
                daily.append(DailyUsage(
                    date=str(date),
                    input_tokens=int(input_tokens or 0),
                    output_tokens=int(output_tokens or 0),
                    sessions=int(sessions or 0),
                    messages=int(messages or 0),
                ))
            return daily[:days]
        finally:
            conn.close()

    def get_session_history(self, limit: int) -> List[Session]:
        if limit <= 0:
            return []
        conn = self._open()
        if conn is None:
            return []
        try:
            try:
                rows = conn.execute(SESSION_HISTORY_QUERY, (int(limit),)).fetchall()
            except sqlite3.Error as e:
                raise ProviderError(f"Failed to query session history: {e}") from e
            # Unlike get_active_sessions, liveness here uses the host clock
            return self._sessions_from_rows(rows, timestamp_is_recent)
        finally:
            conn.close()

    @staticmethod
    def _sessions_from_rows(rows, liveness) -> List[Session]:
        sessions = []
        for row in rows:
            try:
                sessions.append(_session_from_row(row, liveness(str(row[3] or ""))))
            except (TypeError, ValueError) as e:
                logger.debug("Skipping malformed session row: %s", e)
        return sessions
