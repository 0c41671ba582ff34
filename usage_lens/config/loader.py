"""
Profile configuration loading and saving.

Profiles bind a display name to one provider's connection parameters and
are stored in a YAML file.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

CONFIG_DIR = Path.home() / ".config" / "usage-lens"
PROFILES_FILE = CONFIG_DIR / "profiles.yaml"


class ProviderType(Enum):
    """Supported provider families."""
    CLAUDE = "claude"
    GEMINI = "gemini"
    ZAI = "zai"


class SourceType(Enum):
    """Where a profile's data comes from."""
    ACCOUNT = "account"  # local files written by the vendor's client
    API = "api"  # remote API called with a key


@dataclass(frozen=True)
class Profile:
    """One configured usage source."""
    id: str
    name: str
    provider_type: str
    config_dir: str = ""
    enabled: bool = True
    source_type: str = SourceType.ACCOUNT.value
    api_key: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        """Validate identifiers and tags."""
        if not self.id or not self.id.strip():
            raise ValueError("profile id is required and cannot be empty")
        if not self.name or not self.name.strip():
            raise ValueError("profile name is required and cannot be empty")
        valid_sources = [s.value for s in SourceType]
        if self.source_type not in valid_sources:
            raise ValueError(f"source_type must be one of: {valid_sources}")

    @property
    def is_api(self) -> bool:
        return self.source_type == SourceType.API.value

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "provider_type": self.provider_type,
            "config_dir": self.config_dir,
            "enabled": self.enabled,
            "source_type": self.source_type,
        }
        if self.api_key is not None:
            data["api_key"] = self.api_key
        return data


_REQUIRED_KEYS = {"id", "name", "provider_type"}
_ALLOWED_KEYS = _REQUIRED_KEYS | {"config_dir", "enabled", "source_type", "api_key"}


def load_profiles(path: Optional[str] = None) -> List[Profile]:
    """Load and validate profiles from a YAML file.

    Args:
        path: Path to YAML profiles file (defaults to PROFILES_FILE)

    Returns:
        Profiles in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If the content is invalid
    """
    config_path = Path(path) if path else PROFILES_FILE
    if not config_path.exists():
        raise FileNotFoundError(f"Profiles file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in profiles file {config_path}: {e}")

    if raw_config is None:
        return []
    if not isinstance(raw_config, dict):
        raise ValueError("Profiles file must contain a mapping")

    unknown_keys = set(raw_config.keys()) - {'profiles'}
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    profiles_data = raw_config.get('profiles') or []
    if not isinstance(profiles_data, list):
        raise ValueError("'profiles' must be a list")

    profiles = []
    seen_ids = set()
    for index, data in enumerate(profiles_data):
        profile = _parse_profile(data, f"profiles[{index}]")
        if profile.id in seen_ids:
            raise ValueError(f"Duplicate profile id in profiles[{index}]: {profile.id}")
        seen_ids.add(profile.id)
        profiles.append(profile)
    return profiles


def _parse_profile(data: Any, path: str) -> Profile:
    """Parse and validate one profile entry.

    Raises:
        ValueError: If the entry is invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"{path} must be a dictionary")

    unknown_keys = set(data.keys()) - _ALLOWED_KEYS
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")
    missing = _REQUIRED_KEYS - set(data.keys())
    if missing:
        raise ValueError(f"Missing required keys in {path}: {sorted(missing)}")

    for key in ("id", "name", "provider_type", "config_dir", "source_type", "api_key"):
        if key in data and data[key] is not None and not isinstance(data[key], str):
            raise ValueError(f"'{key}' in {path} must be a string")
    if "enabled" in data and not isinstance(data["enabled"], bool):
        raise ValueError(f"'enabled' in {path} must be a boolean")

    provider_type = data["provider_type"].lower()
    valid_providers = [p.value for p in ProviderType]
    if provider_type not in valid_providers:
        raise ValueError(f"'provider_type' in {path} must be one of: {valid_providers}")

    source_type = (data.get("source_type") or SourceType.ACCOUNT.value).lower()
    valid_sources = [s.value for s in SourceType]
    if source_type not in valid_sources:
        raise ValueError(f"'source_type' in {path} must be one of: {valid_sources}")

    try:
        return Profile(
            id=data["id"],
            name=data["name"],
            provider_type=provider_type,
            config_dir=data.get("config_dir") or "",
            enabled=data.get("enabled", True),
            source_type=source_type,
            api_key=data.get("api_key"),
        )
    except ValueError as e:
        raise ValueError(f"Invalid profile in {path}: {e}")


def save_profiles(profiles: List[Profile], path: Optional[str] = None) -> Path:
    """Write profiles to a YAML file, creating parent directories.

    Returns:
        Path written to
    """
    config_path = Path(path) if path else PROFILES_FILE
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(
            {"profiles": [p.to_dict() for p in profiles]},
            f,
            sort_keys=False,
        )
    return config_path


def _user_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    appdata = os.environ.get("APPDATA")
    if appdata:
        return Path(appdata)
    return Path.home() / ".config"


def default_profiles(home: Optional[Path] = None,
                     config_home: Optional[Path] = None) -> List[Profile]:
    """Profiles for every locally installed client that can be detected.

    Args:
        home: Home directory to search (defaults to the user's home)
        config_home: Per-user config directory (defaults to XDG/APPDATA)

    Returns:
        Enabled account profiles for ~/.claude, ~/.gemini and <config>/zai
    """
    home = home or Path.home()
    config_home = config_home or _user_config_dir()

    candidates = [
        ("claude-default", "Claude", ProviderType.CLAUDE, home / ".claude"),
        ("gemini-default", "Gemini", ProviderType.GEMINI, home / ".gemini"),
        ("zai-default", "z.ai", ProviderType.ZAI, config_home / "zai"),
    ]
    return [
        Profile(
            id=profile_id,
            name=name,
            provider_type=provider.value,
            config_dir=str(directory),
        )
        for profile_id, name, provider, directory in candidates
        if directory.is_dir()
    ]
