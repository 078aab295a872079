"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DRP_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Delivery Route Planner API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level applied by create_app().")
    default_hub: Optional[str] = Field(
        default=None,
        description="Hub address used when a planning request does not name one.",
    )
    packages_file: Path = Field(
        default=Path("data/packages.json"),
        description="JSON array of {package_id, destination} records used when Supabase is not configured.",
    )

    # OpenRouteService
    ors_api_key: Optional[str] = Field(default=None, description="OpenRouteService API key.")
    ors_base_url: str = Field(default="https://api.openrouteservice.org")
    ors_profile: str = Field(default="driving-car", description="ORS matrix profile.")
    geocode_country: Optional[str] = Field(
        default="US",
        description="ISO country used to bound geocode searches; empty disables the boundary.",
    )

    # Matrix provider selection
    matrix_provider: Literal["ors", "osrm"] = Field(
        default="ors",
        description="Routing backend used for distance matrix rows. Geocoding always uses ORS.",
    )
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(default="driving")

    # Upstream call policy
    http_timeout_seconds: float = Field(default=10.0, gt=0.0)
    http_connect_timeout_seconds: float = Field(default=5.0, gt=0.0)
    max_attempts: int = Field(default=4, ge=1)
    initial_backoff_seconds: float = Field(default=0.2, ge=0.0)
    max_parallel_requests: int = Field(default=5, ge=1)
    plan_timeout_seconds: float = Field(default=120.0, gt=0.0)

    # Planning request bounds
    default_truck_count: int = Field(default=3, ge=1)
    max_truck_count: int = Field(default=10, ge=1)
    default_truck_capacity: int = Field(default=16, ge=1)
    max_truck_capacity: int = Field(default=100, ge=1)

    strict_cache_writes: bool = Field(
        default=False,
        description="Raise CacheError when a cache write-back fails instead of logging it.",
    )

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("packages_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("ors_base_url", "osrm_base_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.rstrip("/") or None
        return value


settings = Settings()
