"""
Exception hierarchy for usage queries.

Missing sources and malformed records never raise; only transport,
protocol and configuration failures reach the caller.
"""


class UsageLensError(Exception):
    """Base class for all errors raised by usage_lens."""


class ConfigurationError(UsageLensError):
    """Raised when a profile cannot be turned into a provider."""

    def __init__(self, message: str, config_key: str = ""):
        super().__init__(message)
        self.config_key = config_key


class ProviderError(UsageLensError):
    """Raised when a provider cannot fetch or decode its data."""


class ProviderTimeoutError(ProviderError):
    """Raised when a remote call exceeds its timeout. Safe to retry."""


class ProfileNotFoundError(UsageLensError):
    """Raised when no provider is registered for a profile id."""

    def __init__(self, profile_id: str):
        super().__init__(f"Profile not found: {profile_id}")
        self.profile_id = profile_id
