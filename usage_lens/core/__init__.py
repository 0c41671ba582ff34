"""
Core modules for usage_lens.

This package contains the normalized usage model, cost estimation,
liveness rules and the response cache shared by every provider.
"""
