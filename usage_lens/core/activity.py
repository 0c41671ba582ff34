"""
Session liveness and timestamp helpers.

A session is live while its reference timestamp (file mtime or row
timestamp) lies within the trailing activity window.
"""

import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

ACTIVE_WINDOW = timedelta(minutes=30)
ACTIVE_WINDOW_SECONDS = ACTIVE_WINDOW.total_seconds()

# Approximations used where a source only stores combined token totals.
# These are heuristics, not measured ratios.
DAILY_INPUT_SHARE_PERCENT = 30  # stats cache daily totals: 30/70 input/output
SESSION_INPUT_SHARE_PERCENT = 40  # per-session totals: 40/60 input/output


def split_tokens(total: int, input_share_percent: int) -> tuple:
    """Split a combined token total into (input, output) estimates."""
    input_est = total * input_share_percent // 100
    return input_est, total - input_est


def is_recent(timestamp: float, now: Optional[float] = None) -> bool:
    """Check whether an epoch timestamp falls inside the activity window.

    Timestamps in the future are not considered recent.
    """
    if now is None:
        now = time.time()
    age = now - timestamp
    return 0 <= age < ACTIVE_WINDOW_SECONDS


def file_is_recent(path: Path, now: Optional[float] = None) -> bool:
    """Liveness from file modification time; unreadable files are inactive."""
    try:
        mtime = path.stat().st_mtime
    except OSError:
        return False
    return is_recent(mtime, now)


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 or SQLite timestamp into an aware UTC datetime.

    Naive values are taken to be UTC (SQLite's CURRENT_TIMESTAMP convention).
    Returns None when the value cannot be parsed.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def timestamp_is_recent(value: str, now: Optional[datetime] = None) -> bool:
    """Liveness for a textual timestamp, anchored to the host clock."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return False
    if now is None:
        now = datetime.now(timezone.utc)
    return now - ACTIVE_WINDOW <= parsed <= now


def as_count(value: Any) -> int:
    """Coerce a JSON token/message counter to a non-negative int.

    Raises:
        ValueError: If the value is not numeric
    """
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Expected a number, got {value!r}")
    return max(int(value), 0)
