"""
Unit tests for the Gemini local log provider.
"""

import json
import os
import shutil
import tempfile
import time
from pathlib import Path

import pytest

from usage_lens.providers.gemini_logs import GeminiLogProvider


@pytest.fixture(autouse=True)
def no_home_override(monkeypatch):
    """Keep a developer's GEMINI_CLI_HOME out of the tests."""
    monkeypatch.delenv("GEMINI_CLI_HOME", raising=False)


class GeminiDirTestCase:
    """Shared temp directory setup."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_dir = Path(self.temp_dir)
        self.provider = GeminiLogProvider(self.config_dir)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def chats_dir(self, project_hash):
        path = self.config_dir / "tmp" / project_hash / "chats"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def touch(self, path, age_seconds):
        mtime = time.time() - age_seconds
        os.utime(path, (mtime, mtime))

    def write_jsonl(self, project_hash, name, records, age_seconds=0):
        path = self.chats_dir(project_hash) / f"session-{name}.jsonl"
        with open(path, "w", encoding="utf-8") as f:
            for record in records:
                f.write(record if isinstance(record, str) else json.dumps(record))
                f.write("\n")
        self.touch(path, age_seconds)
        return path

    def write_legacy(self, project_hash, name, document, age_seconds=0):
        path = self.chats_dir(project_hash) / f"session-{name}.json"
        with open(path, "w", encoding="utf-8") as f:
            if isinstance(document, str):
                f.write(document)
            else:
                json.dump(document, f)
        self.touch(path, age_seconds)
        return path


class TestJsonlSessions(GeminiDirTestCase):
    """Test JSON-Lines session parsing."""

    def test_session_fields(self):
        self.write_jsonl("abc123", "one", [
            {"type": "user", "timestamp": "2025-02-01T08:00:00Z"},
            {"model": "gemini-2.5-pro", "tokens": {"input": 100, "output": 50},
             "timestamp": "2025-02-01T08:00:05Z"},
            "{broken",
            {"model": "gemini-2.5-flash", "tokens": {"input": 10, "output": 5},
             "timestamp": "2025-02-01T08:01:00Z"},
        ])

        sessions = self.provider.get_active_sessions()

        assert len(sessions) == 1
        session = sessions[0]
        assert session.id == "session-one"
        assert session.project == "abc123"
        assert session.model == "gemini-2.5-flash"
        assert session.tokens_used == 165
        assert session.message_count == 2
        assert session.last_active == "2025-02-01T08:01:00Z"

    def test_no_token_records(self):
        """Verify a log without token records is not a session."""
        self.write_jsonl("abc", "empty", [{"type": "user", "timestamp": "2025-02-01T08:00:00Z"}])
        assert self.provider.get_session_history(10) == []

    def test_default_model_label(self):
        self.write_jsonl("abc", "nomodel", [{"tokens": {"input": 1, "output": 1}}])
        assert self.provider.get_session_history(1)[0].model == "gemini-unknown"


class TestLegacySessions(GeminiDirTestCase):
    """Test whole-file JSON session documents."""

    def test_legacy_document(self):
        self.write_legacy("hash1", "legacy", {
            "model": "gemini-1.5-pro",
            "createdAt": "2025-01-15T12:00:00Z",
            "messages": [
                {"role": "user"},
                {"role": "model", "tokens": {"input": 40, "output": 60}},
            ],
        })

        history = self.provider.get_session_history(10)

        assert len(history) == 1
        session = history[0]
        assert session.message_count == 2
        assert session.tokens_used == 100
        assert session.model == "gemini-1.5-pro"
        assert session.last_active == "2025-01-15T12:00:00Z"
        assert session.project == "hash1"

    def test_unparseable_document_is_skipped(self):
        self.write_legacy("hash1", "bad", "{not json")
        self.write_jsonl("hash1", "good", [{"tokens": {"input": 1, "output": 1}}])

        history = self.provider.get_session_history(10)

        assert [s.id for s in history] == ["session-good"]


class TestAggregates(GeminiDirTestCase):
    """Test usage, activity and daily rollups."""

    def test_usage_stats_split(self):
        """Verify per-session totals are split 40/60."""
        self.write_jsonl("h", "a", [{"model": "gemini-2.5-pro", "tokens": {"input": 500, "output": 500}}])
        self.write_legacy("h", "b", {
            "model": "gemini-2.5-pro",
            "messages": [{"tokens": {"input": 0, "output": 1000}}],
        })

        stats = self.provider.get_usage_stats()

        assert stats.total_sessions == 2
        assert stats.total_messages == 2
        assert stats.total_input_tokens == 800
        assert stats.total_output_tokens == 1200
        assert stats.model_breakdown["gemini-2.5-pro"].input_tokens == 800
        assert stats.estimated_cost_usd == stats.model_breakdown["gemini-2.5-pro"].cost_usd

    def test_usage_stats_flash_cost(self):
        self.write_jsonl("h", "a", [{"model": "gemini-2.0-flash",
                                     "tokens": {"input": 1_000_000, "output": 0}}])

        stats = self.provider.get_usage_stats()

        # 400k input at 0.15 + 600k output at 0.60
        assert stats.estimated_cost_usd == 0.42

    def test_active_filters_by_mtime(self):
        self.write_jsonl("h", "fresh", [{"tokens": {"input": 1, "output": 1}}], age_seconds=30)
        self.write_jsonl("h", "stale", [{"tokens": {"input": 1, "output": 1}}], age_seconds=7200)

        active = self.provider.get_active_sessions()

        assert [s.id for s in active] == ["session-fresh"]

    def test_daily_groups_by_date(self):
        self.write_jsonl("h", "a", [{"tokens": {"input": 50, "output": 50}, "timestamp": "2025-03-02T10:00:00Z"}])
        self.write_jsonl("h", "b", [{"tokens": {"input": 100, "output": 0}, "timestamp": "2025-03-02T23:00:00Z"}])
        self.write_jsonl("h", "c", [{"tokens": {"input": 10, "output": 0}, "timestamp": "2025-03-01T01:00:00Z"}])
        self.write_jsonl("h", "d", [{"tokens": {"input": 10, "output": 0}}])

        daily = self.provider.get_daily_usage(5)

        assert [d.date for d in daily] == ["2025-03-02", "2025-03-01"]
        assert daily[0].sessions == 2
        assert daily[0].input_tokens == 80
        assert daily[0].output_tokens == 120
        assert self.provider.get_daily_usage(1)[0].date == "2025-03-02"

    def test_history_sorted_by_last_active(self):
        self.write_jsonl("h", "a", [{"tokens": {"input": 1, "output": 1}, "timestamp": "2025-03-01T00:00:00Z"}])
        self.write_jsonl("h", "b", [{"tokens": {"input": 1, "output": 1}, "timestamp": "2025-03-03T00:00:00Z"}])

        history = self.provider.get_session_history(5)

        assert [s.id for s in history] == ["session-b", "session-a"]

    def test_env_override(self, monkeypatch):
        """Verify GEMINI_CLI_HOME replaces the profile directory."""
        other = Path(tempfile.mkdtemp())
        try:
            chats = other / "tmp" / "x" / "chats"
            chats.mkdir(parents=True)
            (chats / "session-env.jsonl").write_text(json.dumps({"tokens": {"input": 1, "output": 2}}) + "\n")
            monkeypatch.setenv("GEMINI_CLI_HOME", str(other))

            history = self.provider.get_session_history(5)

            assert [s.id for s in history] == ["session-env"]
            assert self.provider.source_location == str(other)
        finally:
            shutil.rmtree(other)

    def test_missing_directory(self):
        provider = GeminiLogProvider(self.config_dir / "missing")
        assert provider.get_usage_stats().total_tokens == 0
        assert provider.get_daily_usage(7) == []
