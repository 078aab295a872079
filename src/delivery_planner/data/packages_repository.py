"""Package sources: in-memory, JSON file and Supabase."""

from __future__ import annotations

import functools
import json
import logging
import threading
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol

from ..config import settings
from ..db.supabase import get_supabase_client
from ..errors import PackageSourceError
from ..models.domain import Package


class PackageSource(Protocol):
    def list(self) -> list[Package]:
        ...


def _coerce_package(record: Any, position: int) -> Package:
    if not isinstance(record, dict):
        raise PackageSourceError(f"package record #{position} is not an object")
    try:
        package_id = int(record["package_id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise PackageSourceError(f"package record #{position} has an invalid package_id") from exc
    if package_id <= 0:
        raise PackageSourceError(f"package record #{position} has non-positive package_id {package_id}")

    destination = str(record.get("destination") or "").strip()
    if not destination:
        raise PackageSourceError(f"package_id={package_id}: destination cannot be empty")
    return Package(package_id=package_id, destination=destination)


def _check_unique(packages: Iterable[Package]) -> None:
    seen: set[int] = set()
    for package in packages:
        if package.package_id in seen:
            raise PackageSourceError(f"duplicate package_id {package.package_id}")
        seen.add(package.package_id)


class InMemoryPackageRepository:
    """Holds Package objects directly; plan application mutates them in place."""

    def __init__(self, packages: Iterable[Package] = ()) -> None:
        self._lock = threading.Lock()
        self._packages = sorted(packages, key=lambda p: p.package_id)
        _check_unique(self._packages)

    def list(self) -> list[Package]:
        with self._lock:
            return list(self._packages)

    def add(self, package: Package) -> None:
        with self._lock:
            _check_unique([*self._packages, package])
            self._packages.append(package)
            self._packages.sort(key=lambda p: p.package_id)


@functools.lru_cache(maxsize=4)
def load_package_records(source: Path) -> tuple[Package, ...]:
    """Parse and validate a JSON array of ``{package_id, destination}`` records."""
    if not source.exists():
        raise PackageSourceError(f"Package file not found: {source}")
    try:
        with source.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise PackageSourceError(f"Unable to read package file {source}: {exc}") from exc

    if not isinstance(data, list):
        raise PackageSourceError(f"Package file {source} must contain a JSON array")

    packages = tuple(_coerce_package(record, i + 1) for i, record in enumerate(data))
    _check_unique(packages)
    return tuple(sorted(packages, key=lambda p: p.package_id))


class JsonFilePackageRepository:
    """Read-only package source backed by a JSON file; returns fresh objects per call."""

    def __init__(self, source: Optional[Path] = None) -> None:
        self.source = (source or settings.packages_file).resolve()

    def list(self) -> list[Package]:
        return [
            Package(package_id=p.package_id, destination=p.destination)
            for p in load_package_records(self.source)
        ]


class SupabasePackageRepository:
    table = "packages"

    def __init__(self, client: Any = None) -> None:
        self.client = client or get_supabase_client()
        if self.client is None:
            raise ValueError("Supabase is not configured.")

    def list(self) -> list[Package]:
        try:
            response = (
                self.client.table(self.table)
                .select("package_id,destination")
                .order("package_id")
                .execute()
            )
        except Exception as exc:
            logging.error(f"Failed to list packages from Supabase: {exc}")
            raise PackageSourceError(f"list packages: query {self.table} table: {exc}") from exc

        packages = [_coerce_package(row, i + 1) for i, row in enumerate(response.data or [])]
        _check_unique(packages)
        return packages
