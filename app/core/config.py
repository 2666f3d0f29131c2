"""Configuration management for the TLDR Content API."""

import logging
from functools import lru_cache
from typing import List

from pydantic import NonNegativeInt, PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from urllib.parse import urlparse


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "content_db"
    catalog_collection: str = "merged_catalog"
    recent_collection: str = "just_in"

    # Browser origins allowed to call the API
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "https://content.lumiolabs.in",
        "https://manojitballav.github.io",
        "https://manojitballav.com",
    ]
    cors_origin_regex: str | None = r".*\.(github\.io|lumiolabs\.in)"

    # Seconds to keep facet lists and the year range (0 disables caching)
    facet_cache_ttl: NonNegativeInt = 300

    # Server
    host: str = "0.0.0.0"
    port: PositiveInt = 8080
    log_level: str = "INFO"
    debug: bool = False

    @field_validator("mongo_uri")
    @classmethod
    def validate_mongo_uri(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("mongodb", "mongodb+srv"):
            raise ValueError("Mongo URI must use the mongodb:// or mongodb+srv:// scheme")
        if not parsed.netloc:
            raise ValueError("Mongo URI must have a host")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
