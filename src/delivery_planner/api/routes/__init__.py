"""Route group exports."""

from . import health, packages, plans

__all__ = ["health", "packages", "plans"]
