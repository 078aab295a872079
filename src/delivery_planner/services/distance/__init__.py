"""Distance and geocode lookups with cache-aside and retry."""

from .provider import BatchDistanceProvider, DistanceProvider, LookupKind
from .resolver import DistanceResolver
from .static import StaticDistanceProvider

__all__ = [
    "BatchDistanceProvider",
    "DistanceProvider",
    "DistanceResolver",
    "LookupKind",
    "StaticDistanceProvider",
]
