"""Settings loading and validation."""
from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from proximity.geo.client import DEFAULT_GEOCODER_URL, DEFAULT_USER_AGENT
from proximity.geo.point import GeoPoint
from proximity.location.provider import DEFAULT_IP_LOCATION_URL

ENV_OVERRIDES = {
    "PROXIMITY_GEOCODER_URL": ("geocoder", "base_url"),
    "PROXIMITY_USER_AGENT": ("geocoder", "user_agent"),
    "PROXIMITY_IP_LOCATION_URL": ("location", "ip_lookup_url"),
}


class ConfigError(ValueError):
    """Raised when the settings file cannot be parsed or validated."""


class GeocoderSettings(BaseModel):
    base_url: str = DEFAULT_GEOCODER_URL
    user_agent: str = Field(default=DEFAULT_USER_AGENT, min_length=1)
    timeout_seconds: float = Field(default=4.0, gt=0)
    country_codes: Optional[str] = None


class LocationSettings(BaseModel):
    timeout_seconds: float = Field(default=5.0, gt=0)
    ip_lookup_url: str = DEFAULT_IP_LOCATION_URL
    known_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    known_lng: Optional[float] = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def _both_or_neither(self) -> "LocationSettings":
        if (self.known_lat is None) != (self.known_lng is None):
            raise ValueError("known_lat and known_lng must be set together")
        return self

    def known_point(self) -> Optional[GeoPoint]:
        return GeoPoint.from_values(self.known_lat, self.known_lng)


class RankingSettings(BaseModel):
    concurrency: int = Field(default=3, gt=0)
    popular_limit: int = Field(default=10, gt=0)


class Settings(BaseModel):
    """Validated configuration for the proximity CLI."""

    geocoder: GeocoderSettings = Field(default_factory=GeocoderSettings)
    location: LocationSettings = Field(default_factory=LocationSettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)


def _apply_env(payload: Dict[str, Dict[str, object]]) -> None:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            payload.setdefault(section, {})[key] = value


def load_settings(path: Path) -> Settings:
    """Read the TOML configuration file, falling back to defaults when absent."""
    payload: Dict[str, Dict[str, object]] = {}
    if path.exists():
        try:
            with path.open("rb") as handle:
                payload = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid settings file {path}: {exc}") from exc
    _apply_env(payload)
    try:
        return Settings(**payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings in {path}: {exc}") from exc
