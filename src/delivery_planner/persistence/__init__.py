"""Cache storage backends."""

from .cache_store import (
    DistanceStore,
    GeocodeStore,
    InMemoryDistanceStore,
    InMemoryGeocodeStore,
)

__all__ = ["DistanceStore", "GeocodeStore", "InMemoryDistanceStore", "InMemoryGeocodeStore"]
