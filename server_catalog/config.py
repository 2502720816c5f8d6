"""
Configuration settings for the server catalog.

Uses Pydantic Settings to load environment variables for the storage backend,
database connection, caching, import batching and logging.
"""
from __future__ import annotations

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database (postgres backend only)
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("server_catalog", alias="DB_NAME")
    db_statement_timeout_ms: int = Field(30_000, alias="DB_STATEMENT_TIMEOUT_MS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Catalog
    catalog_backend: str = Field("memory", alias="CATALOG_BACKEND")
    catalog_seed_path: str = Field("data/servers.json", alias="CATALOG_SEED_PATH")
    cache_ttl_seconds: int = Field(3600, alias="CACHE_TTL_SECONDS")

    # Import and pagination defaults
    import_batch_size: int = Field(100, alias="IMPORT_BATCH_SIZE")
    page_default_limit: int = Field(20, alias="PAGE_DEFAULT_LIMIT")
    page_max_limit: int = Field(100, alias="PAGE_MAX_LIMIT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
