"""
usage_lens - unified token usage and cost across AI assistant providers.
"""

__version__ = "0.1.0"
