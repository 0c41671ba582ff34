"""
Unit tests for liveness and timestamp helpers.
"""

import os
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from usage_lens.core.activity import (
    as_count,
    file_is_recent,
    is_recent,
    parse_timestamp,
    split_tokens,
    timestamp_is_recent,
)


class TestIsRecent:
    """Test the 30 minute activity window."""

    def test_just_inside_window(self):
        """Verify 29:59 old is still active."""
        assert is_recent(1000.0, now=1000.0 + 29 * 60 + 59)

    def test_just_outside_window(self):
        """Verify 30:01 old is inactive."""
        assert not is_recent(1000.0, now=1000.0 + 30 * 60 + 1)

    def test_future_is_inactive(self):
        assert not is_recent(2000.0, now=1000.0)


class TestFileIsRecent:
    """Test liveness from file modification times."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = Path(self.temp_dir) / "session.jsonl"
        self.path.write_text("{}\n")

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def test_recent_file(self):
        now = 1_700_000_000.0
        os.utime(self.path, (now - 60, now - 60))
        assert file_is_recent(self.path, now=now)

    def test_stale_file(self):
        now = 1_700_000_000.0
        os.utime(self.path, (now - 31 * 60, now - 31 * 60))
        assert not file_is_recent(self.path, now=now)

    def test_missing_file(self):
        assert not file_is_recent(Path(self.temp_dir) / "missing.jsonl")


class TestTimestamps:
    """Test textual timestamp parsing and liveness."""

    def test_parse_zulu(self):
        parsed = parse_timestamp("2025-01-01T12:00:00Z")
        assert parsed == datetime(2025, 1, 1, 12, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        """Verify SQLite CURRENT_TIMESTAMP values are read as UTC."""
        parsed = parse_timestamp("2025-01-01 12:00:00")
        assert parsed == datetime(2025, 1, 1, 12, tzinfo=timezone.utc)

    def test_offset_is_normalized(self):
        parsed = parse_timestamp("2025-01-01T14:00:00+02:00")
        assert parsed == datetime(2025, 1, 1, 12, tzinfo=timezone.utc)

    def test_unparseable(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp("") is None

    def test_timestamp_window(self):
        now = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        inside = (now - timedelta(minutes=29, seconds=59)).strftime("%Y-%m-%d %H:%M:%S")
        outside = (now - timedelta(minutes=30, seconds=1)).strftime("%Y-%m-%d %H:%M:%S")
        assert timestamp_is_recent(inside, now=now)
        assert not timestamp_is_recent(outside, now=now)
        assert not timestamp_is_recent("garbage", now=now)


class TestCounters:
    """Test token counter coercion and splitting."""

    def test_as_count(self):
        assert as_count(None) == 0
        assert as_count(12) == 12
        assert as_count(12.9) == 12
        assert as_count(-5) == 0

    @pytest.mark.parametrize("value", ["12", True, [], {}])
    def test_as_count_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            as_count(value)

    def test_split_tokens(self):
        assert split_tokens(1000, 30) == (300, 700)
        assert split_tokens(1001, 40) == (400, 601)
