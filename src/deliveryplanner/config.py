"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DP_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Delivery Planner API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level for the API and jobs.")
    timezone: str = Field(
        default="Asia/Kolkata",
        description="Canonical time zone of the whole deployment. Weekdays and 'today' are computed here.",
    )
    dispatch_hour: int = Field(
        default=6,
        ge=0,
        le=23,
        description="Local hour at which generated subscription deliveries are scheduled.",
    )
    expansion_lead_days: int = Field(
        default=1,
        ge=0,
        description="How many days ahead the nightly expansion materializes deliveries (1 = tomorrow).",
    )
    default_depot_latitude: float = Field(
        default=11.0168,
        ge=-90.0,
        le=90.0,
        description="Fallback depot latitude when a planning request does not supply one.",
    )
    default_depot_longitude: float = Field(default=76.9558, ge=-180.0, le=180.0)
    average_speed_kmh: float = Field(default=30.0, gt=0.0)
    per_stop_minutes: int = Field(default=5, ge=0)
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

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
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

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone '{value}'") from exc
        return value


settings = Settings()
