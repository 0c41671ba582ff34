"""
Cross-provider rollups.

One unreachable or misconfigured provider must not blank the whole
dashboard, so failures here omit that provider instead of raising.
"""

import logging
from typing import List

from usage_lens.core.models import UsageStats
from usage_lens.registry.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def get_all_usage_stats(registry: ProviderRegistry) -> List[UsageStats]:
    """Usage stats for every enabled profile, in stored profile order.

    Profiles without a provider, or whose query fails, are left out.
    Each entry reflects its own provider at the moment it was queried;
    there is no snapshot across providers.
    """
    all_stats = []
    for profile, provider in registry.enabled_providers():
        if provider is None:
            logger.debug("No provider registered for profile %s", profile.id)
            continue
        try:
            all_stats.append(provider.get_usage_stats())
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Omitting %s from usage totals: %s", profile.id, e)
    return all_stats
