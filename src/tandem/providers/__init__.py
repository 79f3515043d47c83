"""
Tandem Providers — one adapter per upstream model API.

Each adapter owns its provider's wire format and yields NormalizedEvents.
Swap providers by changing config.
"""

from tandem.providers.base import ProviderAdapter
from tandem.providers.registry import ProviderRegistry, create_adapter

__all__ = [
    "ProviderAdapter",
    "ProviderRegistry",
    "create_adapter",
]
