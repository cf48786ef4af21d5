"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


ExportMode = Literal["preview", "full"]

# Upstream listing returns at most this many items per sort order.
LISTING_WINDOW_CAP = 9_999
# The product detail query rejects larger id batches.
MAX_DETAIL_BATCH_SIZE = 30


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Shelf Export", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    api_base_url: HttpUrl = Field(
        default="https://www.amazon.com", alias="API_BASE_URL"
    )
    product_url_base: str = Field(
        default="https://www.amazon.com/dp/", alias="PRODUCT_URL_BASE"
    )
    csrf_token: str | None = Field(default=None, alias="CSRF_TOKEN")
    session_cookies: str | None = Field(default=None, alias="SESSION_COOKIES")

    export_mode: ExportMode = Field(default="preview", alias="EXPORT_MODE")
    concurrency_limit: int = Field(
        default=20, alias="CONCURRENCY_LIMIT", ge=1, le=200
    )
    max_attempts: int = Field(default=3, alias="MAX_ATTEMPTS", ge=1, le=10)
    retry_base_delay: float = Field(
        default=0.5, alias="RETRY_BASE_DELAY", ge=0, le=30
    )
    listing_retry_delay: float = Field(
        default=0.1, alias="LISTING_RETRY_DELAY", ge=0, le=30
    )
    window_cap: int = Field(default=LISTING_WINDOW_CAP, alias="WINDOW_CAP", ge=1)
    detail_batch_size: int = Field(
        default=MAX_DETAIL_BATCH_SIZE,
        alias="DETAIL_BATCH_SIZE",
        ge=1,
        le=MAX_DETAIL_BATCH_SIZE,
    )

    customer_name: str = Field(default="", alias="CUSTOMER_NAME")
    customer_email: str | None = Field(default=None, alias="CUSTOMER_EMAIL")

    license_url: str = Field(
        default="https://shelfexport.example.com/license", alias="LICENSE_URL"
    )
    review_url: str = Field(
        default="https://shelfexport.example.com/review", alias="REVIEW_URL"
    )
    feedback_email: str | None = Field(default=None, alias="FEEDBACK_EMAIL")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./shelfexport.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("export_mode", mode="before")
    @classmethod
    def _parse_export_mode(cls, value: object) -> object:
        """Accept the legacy ``trial`` / ``full access`` spellings."""

        return normalize_mode(value)

    @field_validator("product_url_base")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else f"{value}/"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


def normalize_mode(value: object) -> object:
    """Map operator-facing mode names onto ``preview`` or ``full``."""

    if not isinstance(value, str):
        return value
    cleaned = value.strip().lower().replace("_", " ").replace("-", " ")
    if cleaned in {"trial", "preview"}:
        return "preview"
    if cleaned in {"full", "full access"}:
        return "full"
    return cleaned


class PageSizes(BaseModel):
    """Page sizes per query family."""

    model_config = ConfigDict(frozen=True)

    listing: int = 50
    listing_preview: int = 10
    formats: int = 300
    formats_preview: int = 5
    genre_aggregation: int = 50
    series_aggregation: int = 100
    items_in_genre: int = 300
    items_in_series: int = 50


class RunConfig(BaseModel):
    """Immutable per-run configuration threaded through every component."""

    model_config = ConfigDict(frozen=True)

    mode: ExportMode = "preview"
    concurrency_limit: int = Field(default=20, ge=1)
    max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=0.5, ge=0)
    listing_retry_delay: float = Field(default=0.1, ge=0)
    window_cap: int = Field(default=LISTING_WINDOW_CAP, ge=1)
    detail_batch_size: int = Field(
        default=MAX_DETAIL_BATCH_SIZE, ge=1, le=MAX_DETAIL_BATCH_SIZE
    )
    page_sizes: PageSizes = Field(default_factory=PageSizes)
    customer_name: str = ""
    customer_email: str | None = None
    anonymous_id: str | None = None
    product_url_base: str = "https://www.amazon.com/dp/"

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: object) -> object:
        return normalize_mode(value)

    @property
    def preview(self) -> bool:
        return self.mode == "preview"

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "RunConfig":
        """Build a run configuration from settings, ignoring ``None`` overrides."""

        values: dict[str, Any] = {
            "mode": settings.export_mode,
            "concurrency_limit": settings.concurrency_limit,
            "max_attempts": settings.max_attempts,
            "retry_base_delay": settings.retry_base_delay,
            "listing_retry_delay": settings.listing_retry_delay,
            "window_cap": settings.window_cap,
            "detail_batch_size": settings.detail_batch_size,
            "customer_name": settings.customer_name,
            "customer_email": settings.customer_email,
            "product_url_base": settings.product_url_base,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(values)


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
