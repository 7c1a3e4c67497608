"""Tests for settings validation."""

import pytest
from pydantic import ValidationError

from crmflow.core.config import Settings


def test_default_webhook_timeout_fits_action_timeout() -> None:
    settings = Settings()

    assert settings.webhook_max_timeout_seconds <= settings.action_timeout_seconds
    assert settings.webhook_default_timeout_seconds <= settings.webhook_max_timeout_seconds


def test_webhook_max_above_action_timeout_is_rejected() -> None:
    with pytest.raises(ValidationError, match="webhook_max_timeout_seconds"):
        Settings(action_timeout_seconds=15, webhook_max_timeout_seconds=30)


def test_webhook_default_above_max_is_rejected() -> None:
    with pytest.raises(ValidationError, match="webhook_default_timeout_seconds"):
        Settings(webhook_default_timeout_seconds=12, webhook_max_timeout_seconds=10)
