"""
Usage providers.

One implementation of the Provider contract per data source.
"""

from .base import Provider
from .claude_api import ClaudeApiProvider
from .claude_logs import ClaudeLogProvider
from .gemini_logs import GeminiLogProvider
from .zai_api import ZaiApiProvider
from .zai_db import ZaiDatabaseProvider

__all__ = [
    "Provider",
    "ClaudeApiProvider",
    "ClaudeLogProvider",
    "GeminiLogProvider",
    "ZaiApiProvider",
    "ZaiDatabaseProvider",
]
