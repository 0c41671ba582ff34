"""
Provider registry.

Owns the profile list and one backend per enabled profile. Both are shared
by every request, so each sits behind its own lock. Code that needs both
takes the profile lock first, then the provider lock.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from usage_lens.config.loader import Profile
from usage_lens.core.exceptions import ConfigurationError, ProfileNotFoundError
from usage_lens.core.models import DailyUsage, RateLimitStatus, Session, UsageStats
from usage_lens.providers.base import Provider
from usage_lens.registry.factory import create_provider, validate_profile

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[[Profile], Provider]
ProfilesListener = Callable[[List[Profile]], None]


@dataclass(frozen=True)
class ProfileInfo:
    """Profile description safe to hand to a UI; never carries the key."""
    id: str
    name: str
    provider_type: str
    config_dir: str
    enabled: bool
    source_type: str
    has_api_key: bool

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileInfo":
        return cls(
            id=profile.id,
            name=profile.name,
            provider_type=profile.provider_type,
            config_dir=profile.config_dir,
            enabled=profile.enabled,
            source_type=profile.source_type,
            has_api_key=profile.api_key is not None,
        )


class ProviderRegistry:
    """Maps profile ids to constructed providers."""

    def __init__(
        self,
        profiles: Optional[Iterable[Profile]] = None,
        providers: Optional[Dict[str, Provider]] = None,
        on_change: Optional[ProfilesListener] = None,
        builder: ProviderBuilder = create_provider,
    ):
        """
        Args:
            profiles: Configured profiles, in display order
            providers: Already-built providers keyed by profile id
            on_change: Called with the new profile list after add/remove,
                typically to persist it
            builder: Turns a profile into a provider
        """
        self._profiles: List[Profile] = list(profiles or [])
        self._providers: Dict[str, Provider] = dict(providers or {})
        self._profiles_lock = threading.Lock()
        self._providers_lock = threading.Lock()
        self._on_change = on_change
        self._builder = builder

    @classmethod
    def from_profiles(
        cls,
        profiles: Iterable[Profile],
        on_change: Optional[ProfilesListener] = None,
        builder: ProviderBuilder = create_provider,
    ) -> "ProviderRegistry":
        """Build one provider per enabled profile.

        Profiles that cannot be built stay listed without a provider.
        """
        profiles = list(profiles)
        providers = {}
        for profile in profiles:
            if not profile.enabled:
                continue
            try:
                providers[profile.id] = builder(profile)
            except ConfigurationError as e:
                logger.warning("Skipping profile %s: %s", profile.id, e)
        return cls(profiles, providers, on_change=on_change, builder=builder)

    def profiles(self) -> List[Profile]:
        with self._profiles_lock:
            return list(self._profiles)

    def profile_infos(self) -> List[ProfileInfo]:
        return [ProfileInfo.from_profile(p) for p in self.profiles()]

    def enabled_providers(self) -> List[Tuple[Profile, Optional[Provider]]]:
        """Snapshot of enabled profiles in stored order with their providers."""
        with self._profiles_lock:
            with self._providers_lock:
                return [
                    (profile, self._providers.get(profile.id))
                    for profile in self._profiles
                    if profile.enabled
                ]

    def get_provider(self, profile_id: str) -> Provider:
        """
        Raises:
            ProfileNotFoundError: If no provider is registered for the id
        """
        with self._providers_lock:
            provider = self._providers.get(profile_id)
        if provider is None:
            raise ProfileNotFoundError(profile_id)
        return provider

    def add_profile(self, profile: Profile) -> None:
        """Validate, build and register a new profile.

        Raises:
            ConfigurationError: If the profile is invalid, its id is taken,
                or its provider cannot be built
        """
        validate_profile(profile)
        provider = self._builder(profile) if profile.enabled else None

        with self._profiles_lock:
            if any(p.id == profile.id for p in self._profiles):
                raise ConfigurationError(f"Profile already exists: {profile.id}", config_key="id")
            with self._providers_lock:
                if provider is not None:
                    self._providers[profile.id] = provider
                self._profiles.append(profile)
            self._notify()
        logger.info("Added profile %s (%s/%s)", profile.id, profile.provider_type, profile.source_type)

    def remove_profile(self, profile_id: str) -> bool:
        """Drop a profile and its provider.

        Returns:
            True if the profile existed
        """
        with self._profiles_lock:
            with self._providers_lock:
                before = len(self._profiles)
                self._profiles = [p for p in self._profiles if p.id != profile_id]
                self._providers.pop(profile_id, None)
                removed = len(self._profiles) != before
            if removed:
                self._notify()
        if removed:
            logger.info("Removed profile %s", profile_id)
        return removed

    def _notify(self) -> None:
        # Called with the profile lock held so saved order matches memory
        if self._on_change is not None:
            self._on_change(list(self._profiles))

    # Per-profile queries. The provider runs outside the registry locks so
    # a slow refresh on one profile never blocks the others.

    def get_usage_stats(self, profile_id: str) -> UsageStats:
        return self.get_provider(profile_id).get_usage_stats()

    def get_active_sessions(self, profile_id: str) -> List[Session]:
        return self.get_provider(profile_id).get_active_sessions()

    def get_daily_usage(self, profile_id: str, days: int) -> List[DailyUsage]:
        return self.get_provider(profile_id).get_daily_usage(days)

    def get_session_history(self, profile_id: str, limit: int) -> List[Session]:
        return self.get_provider(profile_id).get_session_history(limit)

    def get_rate_limit_status(self, profile_id: str) -> RateLimitStatus:
        return self.get_provider(profile_id).get_rate_limit_status()

    def __contains__(self, profile_id: str) -> bool:
        with self._providers_lock:
            return profile_id in self._providers

