"""Runtime configuration from environment variables and an optional .env file."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import Coordinate


class Settings(BaseSettings):
    """Settings for the rail API client, local state and logging."""

    model_config = SettingsConfigDict(
        env_prefix="GETTRAIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Israel Railways API
    rail_api_base: str = Field(
        default="https://rail-api.rail.co.il/rjpa/api/v1",
        description="Base URL of the Israel Railways journey planner API",
    )
    rail_api_key: str | None = Field(
        default=None,
        description="Value for the ocp-apim-subscription-key header",
    )
    request_timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    requests_per_second: float = Field(
        default=3.0, description="Client-side rate limit for rail API requests"
    )

    # Local state: active reminder, remembered station, last known location
    state_file: Path = Field(
        default=Path("~/.gettrain/state.json"),
        description="JSON file holding the reminder slot and cached values",
    )

    log_level: str = Field(default="INFO", description="Root logging level")

    # Fallback position when the caller supplies none and nothing is cached
    default_latitude: float | None = None
    default_longitude: float | None = None

    @property
    def default_location(self) -> Coordinate | None:
        if self.default_latitude is None or self.default_longitude is None:
            return None
        return Coordinate(latitude=self.default_latitude, longitude=self.default_longitude)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
