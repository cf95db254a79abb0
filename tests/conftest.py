"""Shared fixtures for social login tests."""

import os

# Set up test environment variables before any other imports
TEST_SALT = "test-salt-with-at-least-32-characters-for-signing"
os.environ.setdefault("SOCIAL_LOGIN_SECURITY_SALT", TEST_SALT)
os.environ.setdefault("SOCIAL_LOGIN_SESSION_SECRET", "test-session-secret-with-at-least-32-characters")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest

from social_login.core.database_models import MemberTable
from social_login.core.services.callback_orchestrator import CallbackOrchestrator
from social_login.core.services.extension_hooks import HookRegistry
from social_login.core.services.opauth_config_service import OpauthSettings
from social_login.core.services.signature import sign_response
from social_login.core.storage import DatabaseManager


@pytest.fixture
def db_manager(tmp_path):
    """Database manager backed by a temporary SQLite file."""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'social_login_test.db'}")
    yield manager
    manager.dispose()


@pytest.fixture
def db_session(db_manager):
    session = db_manager.SessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def settings():
    # A low iteration count keeps signing fast; the algorithm is the same
    return OpauthSettings(security_salt=TEST_SALT, security_iteration=3)


@pytest.fixture
def hooks():
    return HookRegistry()


@pytest.fixture
def orchestrator(db_session, settings, hooks):
    return CallbackOrchestrator(db_session, settings, hooks)


@pytest.fixture
def auth_payload():
    """Factory for the `auth` section of a provider response."""

    def _make(provider="google", uid="1001", email="jane@example.com", first_name="Jane", last_name="Doe", **info):
        auth_info = {"name": f"{first_name} {last_name}", "first_name": first_name, "last_name": last_name, **info}
        if email is not None:
            auth_info["email"] = email
        return {
            "provider": provider,
            "uid": uid,
            "info": auth_info,
            "credentials": {"token": "provider-access-token"},
            "raw": {"locale": "en_NZ"},
        }

    return _make


@pytest.fixture
def signed_response(settings):
    """Factory for a complete signed response, with optional top-level overrides."""

    def _sign(auth, **overrides):
        response = sign_response(auth, settings.security_salt, settings.security_iteration)
        response.update(overrides)
        return response

    return _sign


@pytest.fixture
def make_member(db_session):
    """Factory for members already stored in the database."""

    def _make(email="jane@example.com", **fields):
        member = MemberTable(email=email, **fields)
        db_session.add(member)
        db_session.flush()
        return member

    return _make
