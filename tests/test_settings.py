"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from shelf.config import MAX_DETAIL_BATCH_SIZE, RunConfig, Settings


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("trial", "preview"),
        ("Preview", "preview"),
        ("full access", "full"),
        ("FULL_ACCESS", "full"),
        ("full", "full"),
    ],
)
def test_export_mode_accepts_legacy_names(raw: str, expected: str) -> None:
    """Operator-facing mode names should map onto preview or full."""

    settings = Settings(_env_file=None, EXPORT_MODE=raw)

    assert settings.export_mode == expected


def test_export_mode_invalid_raises() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, EXPORT_MODE="enterprise")


def test_detail_batch_size_is_capped() -> None:
    """The product detail query rejects batches above the upstream limit."""

    with pytest.raises(ValidationError):
        Settings(_env_file=None, DETAIL_BATCH_SIZE=MAX_DETAIL_BATCH_SIZE + 1)


def test_product_url_base_gets_trailing_slash() -> None:
    settings = Settings(_env_file=None, PRODUCT_URL_BASE="https://example.com/dp")

    assert settings.product_url_base == "https://example.com/dp/"


def test_run_config_from_settings_ignores_missing_overrides() -> None:
    """``None`` overrides fall back to the configured defaults."""

    settings = Settings(
        _env_file=None,
        EXPORT_MODE="full",
        CONCURRENCY_LIMIT=8,
        CUSTOMER_NAME="Jane Doe",
    )

    config = RunConfig.from_settings(
        settings, concurrency_limit=None, customer_email="jane@example.com"
    )

    assert config.mode == "full"
    assert config.preview is False
    assert config.concurrency_limit == 8
    assert config.customer_name == "Jane Doe"
    assert config.customer_email == "jane@example.com"


def test_run_config_is_immutable() -> None:
    config = RunConfig(mode="trial")

    assert config.preview is True
    with pytest.raises(ValidationError):
        config.mode = "full"


def test_run_config_rejects_zero_concurrency() -> None:
    with pytest.raises(ValidationError):
        RunConfig(concurrency_limit=0)
