"""Settings validation tests."""

import pytest
from pydantic import ValidationError

from tenantry.config import Settings


def test_defaults():
    s = Settings()
    assert s.environment == "development"
    assert s.session_ttl_days == 30
    assert s.magic_link_ttl_minutes == 60
    assert s.invite_ttl_days == 7
    assert s.insecure_dev_identity is False
    assert s.session_sliding_renewal is False


def test_dev_identity_allowed_in_development():
    assert Settings(insecure_dev_identity=True).insecure_dev_identity is True


def test_dev_identity_rejected_elsewhere():
    with pytest.raises(ValidationError):
        Settings(environment="staging", insecure_dev_identity=True)


def test_production_requires_email_api():
    with pytest.raises(ValidationError):
        Settings(environment="production")
    s = Settings(environment="production", email_api_url="https://mail.example.com/emails")
    assert s.is_production


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("TENANTRY_SESSION_TTL_DAYS", "7")
    assert Settings().session_ttl_days == 7
