"""
Shared fixtures: fake store, fake identity provider, a controllable clock and
access settings built without touching the environment.
"""

import pytest

from config import AccessSettings
from tests.fakes import (
    FakeClock,
    FakeEmailProvider,
    FakeIdentityProvider,
    FakeUserRepository,
    FakeWorkspaceRepository,
)

ALLOWED = "a@x.com, partner@x.com"


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


@pytest.fixture
def access():
    return AccessSettings(
        allowed_emails=ALLOWED,
        workspace_id="ws_test",
        session_duration_ms=3_600_000,
        session_check_interval_seconds=60,
        cookie_secure=False,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def users():
    return FakeUserRepository()


@pytest.fixture
def workspaces():
    return FakeWorkspaceRepository()


@pytest.fixture
def provider():
    return FakeIdentityProvider()


@pytest.fixture
def email_provider():
    return FakeEmailProvider()
