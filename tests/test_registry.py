"""
Unit tests for the provider registry and cross-provider aggregation.
"""

import shutil
import tempfile
import threading
from unittest.mock import MagicMock

import pytest

from usage_lens.config.loader import Profile
from usage_lens.core.exceptions import ConfigurationError, ProfileNotFoundError, ProviderError
from usage_lens.core.models import UsageStats
from usage_lens.providers.claude_logs import ClaudeLogProvider
from usage_lens.registry.aggregator import get_all_usage_stats
from usage_lens.registry.registry import ProviderRegistry


def _fake_provider(label):
    provider = MagicMock()
    provider.get_usage_stats.return_value = UsageStats(provider=label, total_input_tokens=1)
    return provider


class TestRegistryLifecycle:
    """Test profile add, remove and lookup."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.saved = []
        self.registry = ProviderRegistry(on_change=self.saved.append)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def profile(self, profile_id="claude-work", **kwargs):
        kwargs.setdefault("config_dir", self.temp_dir)
        return Profile(id=profile_id, name="Work", provider_type="claude", **kwargs)

    def test_add_and_lookup(self):
        self.registry.add_profile(self.profile())

        provider = self.registry.get_provider("claude-work")

        assert isinstance(provider, ClaudeLogProvider)
        assert "claude-work" in self.registry
        assert [p.id for p in self.saved[-1]] == ["claude-work"]

    def test_duplicate_id_rejected(self):
        self.registry.add_profile(self.profile())

        with pytest.raises(ConfigurationError, match="already exists"):
            self.registry.add_profile(self.profile())
        assert len(self.registry.profiles()) == 1
        assert len(self.saved) == 1

    def test_invalid_directory_leaves_state_unchanged(self):
        with pytest.raises(ConfigurationError):
            self.registry.add_profile(self.profile(config_dir=f"{self.temp_dir}/missing"))
        assert self.registry.profiles() == []
        assert self.saved == []

    def test_disabled_profile_has_no_provider(self):
        self.registry.add_profile(self.profile(enabled=False))

        assert [p.id for p in self.registry.profiles()] == ["claude-work"]
        with pytest.raises(ProfileNotFoundError):
            self.registry.get_provider("claude-work")

    def test_remove(self):
        self.registry.add_profile(self.profile())

        assert self.registry.remove_profile("claude-work") is True
        assert self.registry.profiles() == []
        assert "claude-work" not in self.registry
        assert self.saved[-1] == []

    def test_remove_unknown_is_noop(self):
        assert self.registry.remove_profile("nope") is False
        assert self.saved == []

    def test_unknown_profile_query(self):
        with pytest.raises(ProfileNotFoundError, match="Profile not found: ghost"):
            self.registry.get_usage_stats("ghost")

    def test_profile_infos_hide_key(self):
        self.registry.add_profile(Profile(id="api", name="API", provider_type="claude",
                                          source_type="api", api_key="sk-ant-admin-secret"))

        info = self.registry.profile_infos()[0]

        assert info.has_api_key is True
        assert "sk-ant-admin-secret" not in repr(info)
        assert "sk-ant-admin-secret" not in repr(self.registry.profiles()[0])

    def test_concurrent_adds(self):
        """Verify parallel adds keep profiles and providers consistent."""
        errors = []

        def add(index):
            try:
                self.registry.add_profile(self.profile(f"p{index}"))
            except Exception as e:  # pylint: disable=broad-exception-caught
                errors.append(e)

        threads = [threading.Thread(target=add, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(self.registry.profiles()) == 20
        assert all(f"p{i}" in self.registry for i in range(20))


class TestFromProfiles:
    """Test startup construction."""

    def test_unbuildable_profile_is_skipped(self):
        profiles = [
            Profile(id="ok", name="OK", provider_type="claude", config_dir="/tmp"),
            Profile(id="nokey", name="No key", provider_type="claude", source_type="api"),
            Profile(id="off", name="Off", provider_type="gemini", enabled=False),
        ]

        registry = ProviderRegistry.from_profiles(profiles)

        assert [p.id for p in registry.profiles()] == ["ok", "nokey", "off"]
        assert "ok" in registry
        assert "nokey" not in registry
        assert "off" not in registry

    def test_dispatch_uses_builder(self):
        fake = _fake_provider("Fake")
        registry = ProviderRegistry.from_profiles(
            [Profile(id="a", name="A", provider_type="claude")],
            builder=lambda profile: fake,
        )

        assert registry.get_usage_stats("a").provider == "Fake"
        registry.get_daily_usage("a", 7)
        fake.get_daily_usage.assert_called_once_with(7)
        registry.get_session_history("a", 3)
        fake.get_session_history.assert_called_once_with(3)


class TestAggregator:
    """Test usage across all enabled providers."""

    def test_missing_backend_is_omitted(self):
        """Verify three enabled profiles with one unbuilt backend yield two entries."""
        profiles = [
            Profile(id="a", name="A", provider_type="claude"),
            Profile(id="b", name="B", provider_type="gemini"),
            Profile(id="c", name="C", provider_type="zai"),
        ]
        registry = ProviderRegistry(
            profiles,
            providers={"a": _fake_provider("A"), "c": _fake_provider("C")},
        )

        results = get_all_usage_stats(registry)

        assert [r.provider for r in results] == ["A", "C"]

    def test_failing_provider_is_omitted(self):
        broken = MagicMock()
        broken.get_usage_stats.side_effect = ProviderError("API down")
        profiles = [
            Profile(id="a", name="A", provider_type="claude"),
            Profile(id="b", name="B", provider_type="claude"),
        ]
        registry = ProviderRegistry(profiles, providers={"a": broken, "b": _fake_provider("B")})

        assert [r.provider for r in get_all_usage_stats(registry)] == ["B"]

    def test_disabled_profiles_skipped(self):
        disabled = _fake_provider("Off")
        registry = ProviderRegistry(
            [Profile(id="a", name="A", provider_type="claude", enabled=False)],
            providers={"a": disabled},
        )

        assert get_all_usage_stats(registry) == []
        disabled.get_usage_stats.assert_not_called()
