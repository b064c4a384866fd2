"""
Configuration settings for the rental activity report.

Uses Pydantic Settings to load environment variables for database connections,
report table names, the top-N limit and logging.
"""
from __future__ import annotations

import re
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("dvdrental", alias="DB_NAME")
    pool_min_size: int = Field(1, alias="POOL_MIN_SIZE")
    pool_max_size: int = Field(5, alias="POOL_MAX_SIZE")

    # Report tables
    db_schema: str = Field("public", alias="DB_SCHEMA")
    detail_table: str = Field("rental_detail", alias="DETAIL_TABLE")
    summary_table: str = Field("rental_summary", alias="SUMMARY_TABLE")

    # Upstream feed tables (read-only)
    customer_table: str = Field("customer", alias="CUSTOMER_TABLE")
    rental_table: str = Field("rental", alias="RENTAL_TABLE")

    # Report behaviour
    summary_limit: int = Field(100, alias="SUMMARY_LIMIT")
    detail_append_only: bool = Field(False, alias="DETAIL_APPEND_ONLY")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("db_schema", "detail_table", "summary_table", "customer_table", "rental_table")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        if not _IDENTIFIER.match(value):
            raise ValueError(f"not a plain SQL identifier: {value!r}")
        return value

    @field_validator("summary_limit")
    @classmethod
    def _check_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("SUMMARY_LIMIT must be >= 1")
        return value

    @model_validator(mode="after")
    def _check_pool(self) -> "Settings":
        if self.pool_min_size < 1:
            raise ValueError("POOL_MIN_SIZE must be >= 1")
        if self.pool_max_size < self.pool_min_size:
            raise ValueError("POOL_MAX_SIZE must be >= POOL_MIN_SIZE")
        return self

    @property
    def dsn(self) -> str:
        """Compose a libpq connection URI from the database settings."""
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
