"""
Provider construction from profiles.

Backends are selected by a tagged lookup on (provider family, source type).
"""

from pathlib import Path
from typing import Callable, Dict, Tuple

from usage_lens.config.loader import Profile
from usage_lens.core.exceptions import ConfigurationError
from usage_lens.providers.base import Provider
from usage_lens.providers.claude_api import ClaudeApiProvider
from usage_lens.providers.claude_logs import ClaudeLogProvider
from usage_lens.providers.gemini_logs import GeminiLogProvider
from usage_lens.providers.zai_api import ZaiApiProvider
from usage_lens.providers.zai_db import ZaiDatabaseProvider

ANY_SOURCE = "*"


def _require_key(profile: Profile) -> str:
    if not profile.api_key:
        raise ConfigurationError(
            f"API key is required for API source type (profile {profile.id})",
            config_key="api_key",
        )
    return profile.api_key


PROVIDER_BUILDERS: Dict[Tuple[str, str], Callable[[Profile], Provider]] = {
    ("claude", "api"): lambda p: ClaudeApiProvider(_require_key(p), name=p.name),
    ("zai", "api"): lambda p: ZaiApiProvider(_require_key(p), name=p.name),
    ("claude", ANY_SOURCE): lambda p: ClaudeLogProvider(p.config_dir, name=p.name),
    ("gemini", ANY_SOURCE): lambda p: GeminiLogProvider(p.config_dir, name=p.name),
    ("zai", ANY_SOURCE): lambda p: ZaiDatabaseProvider(p.config_dir, name=p.name),
}


def create_provider(profile: Profile) -> Provider:
    """Build the backend for a profile.

    Raises:
        ConfigurationError: If the provider family is unknown or a required
            credential is missing
    """
    builder = (
        PROVIDER_BUILDERS.get((profile.provider_type, profile.source_type))
        or PROVIDER_BUILDERS.get((profile.provider_type, ANY_SOURCE))
    )
    if builder is None:
        raise ConfigurationError(
            f"Unknown provider type: {profile.provider_type}",
            config_key="provider_type",
        )
    return builder(profile)


def validate_profile(profile: Profile) -> None:
    """Checks applied before a new profile is accepted.

    Raises:
        ConfigurationError: If an account profile's directory does not exist
    """
    if not profile.is_api and (
            not profile.config_dir or not Path(profile.config_dir).is_dir()):
        raise ConfigurationError(
            f"Config directory does not exist: {profile.config_dir}",
            config_key="config_dir",
        )
