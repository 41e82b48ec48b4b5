# path: graftrack-api/graftrack/config.py

"""Configuration management using Pydantic settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GRAFTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "graftrack-api"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Entity store
    database_url: str = "sqlite+aiosqlite:///./graftrack.db"

    # Photo storage. Upload URLs point at the bucket; stored photo paths are
    # rewritten to /objects/uploads/<id>.
    upload_bucket_url: str = "https://storage.example.com/graftrack-uploads"
    upload_url_ttl_s: int = 900
    upload_signing_secret: str = "change-me"

    # Map defaults (New York City when no fix is available)
    default_center_lat: float = 40.7128
    default_center_lng: float = -74.0060
    default_zoom: int = 15
    min_zoom: int = 1
    max_zoom: int = 19

    # Client
    api_base_url: str = "http://localhost:8000"
    http_timeout_s: float = 10.0
    # Origin of the web app that serves /shared/<id> pages
    public_base_url: str = "http://localhost:5173"


settings = Settings()
