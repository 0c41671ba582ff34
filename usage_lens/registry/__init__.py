"""
Provider registry and cross-provider aggregation.
"""

from .aggregator import get_all_usage_stats
from .factory import create_provider
from .registry import ProfileInfo, ProviderRegistry

__all__ = ["ProviderRegistry", "ProfileInfo", "create_provider", "get_all_usage_stats"]
