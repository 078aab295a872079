"""Error taxonomy shared by the resolver, the planners and the API layer."""

from __future__ import annotations


class PlanningError(Exception):
    """Base class for every failure raised by the planning core."""


class ValidationError(PlanningError, ValueError):
    """Invalid input: empty hub/origin/destination, out-of-range request values."""


class CapacityExceeded(PlanningError):
    """A truck would exceed its package capacity during assignment."""

    def __init__(self, truck_id: int, capacity: int) -> None:
        super().__init__(f"Truck {truck_id} is at full capacity (capacity={capacity})")
        self.truck_id = truck_id
        self.capacity = capacity


class UpstreamTransient(PlanningError):
    """Retryable upstream failure (429/5xx/network). Never escapes the retry loop."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamPermanent(PlanningError):
    """Non-retryable upstream failure, exhausted retry budget or malformed response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFound(PlanningError):
    """No geocode match for an address."""

    def __init__(self, address: str) -> None:
        super().__init__(f"No geocode results for {address!r}")
        self.address = address


class CacheError(PlanningError):
    """Cache storage I/O failure."""


class PackageSourceError(PlanningError):
    """The package source is unavailable or returned unusable records."""


class Cancelled(PlanningError):
    """Work stopped because its request context was cancelled."""


class DeadlineExceeded(Cancelled):
    """Work stopped because its request context ran past its deadline."""
