"""Unit tests for SessionCookieConfig service."""

import os
from unittest.mock import patch

from social_login.core.services.session_cookie_config import SessionCookieConfig


class TestSessionCookieConfig:
    """Test session cookie configuration functionality."""

    def test_development_defaults(self):
        with patch.dict(os.environ, {"ENVIRONMENT": "development"}, clear=True):
            config = SessionCookieConfig()

            assert config.secure_cookies is False
            assert config.same_site_policy == "lax"
            assert config.session_max_age == 14 * 24 * 60 * 60
            assert config.domain is None

    def test_production_cookies_are_secure(self):
        with patch.dict(os.environ, {"ENVIRONMENT": "production"}, clear=True):
            config = SessionCookieConfig()

            assert config.secure_cookies is True
            assert config.get_cookie_settings()["secure"] is True
            assert "Strict-Transport-Security" in config.get_response_headers()

    def test_strict_same_site_falls_back_to_lax(self):
        """The provider redirect is cross-site, so a strict cookie would lose the session."""
        with patch.dict(os.environ, {"COOKIE_SAMESITE": "strict"}, clear=True):
            assert SessionCookieConfig().same_site_policy == "lax"

    def test_same_site_none_allowed(self):
        with patch.dict(os.environ, {"COOKIE_SAMESITE": "None"}, clear=True):
            assert SessionCookieConfig().same_site_policy == "none"

    def test_domain_is_sanitized(self):
        with patch.dict(os.environ, {"COOKIE_DOMAIN": "example.com\r\nSet-Cookie: x=1"}, clear=True):
            config = SessionCookieConfig()

            assert "\r" not in config.domain
            assert "\n" not in config.domain

    def test_invalid_max_age_uses_default(self):
        with patch.dict(os.environ, {"SOCIAL_LOGIN_SESSION_MAX_AGE": "-5"}, clear=True):
            assert SessionCookieConfig().session_max_age == 14 * 24 * 60 * 60

        with patch.dict(os.environ, {"SOCIAL_LOGIN_SESSION_MAX_AGE": "soon"}, clear=True):
            assert SessionCookieConfig().session_max_age == 14 * 24 * 60 * 60

    def test_session_middleware_kwargs(self):
        with patch.dict(os.environ, {"ENVIRONMENT": "production", "COOKIE_DOMAIN": "example.com"}, clear=True):
            kwargs = SessionCookieConfig().session_middleware_kwargs()

            assert kwargs == {
                "session_cookie": "social_login_session",
                "max_age": 14 * 24 * 60 * 60,
                "same_site": "lax",
                "https_only": True,
                "domain": "example.com",
            }
