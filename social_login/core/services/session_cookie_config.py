"""Cookie and session-middleware security settings."""

import os
from typing import Any


class SessionCookieConfig:
    """Security settings shared by the session cookie and the access token cookie."""

    SESSION_COOKIE_NAME = "social_login_session"

    def __init__(self):
        self.secure_cookies = self._is_production()
        self.same_site_policy = self._get_same_site_policy()
        self.session_max_age = self._get_int("SOCIAL_LOGIN_SESSION_MAX_AGE", 14 * 24 * 60 * 60)
        self.domain = self._sanitize_env_value(os.getenv("COOKIE_DOMAIN", ""))

    def get_cookie_settings(self) -> dict[str, Any]:
        return {
            "secure": self.secure_cookies,
            "httponly": True,
            "samesite": self.same_site_policy,
            "domain": self.domain,
            "path": "/",
        }

    def session_middleware_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for Starlette's SessionMiddleware."""
        kwargs: dict[str, Any] = {
            "session_cookie": self.SESSION_COOKIE_NAME,
            "max_age": self.session_max_age,
            "same_site": self.same_site_policy,
            "https_only": self.secure_cookies,
        }
        if self.domain:
            kwargs["domain"] = self.domain
        return kwargs

    def get_response_headers(self) -> dict[str, str]:
        headers = {}

        if self.secure_cookies:
            headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        headers["X-Content-Type-Options"] = "nosniff"
        headers["X-Frame-Options"] = "DENY"
        headers["Referrer-Policy"] = "same-origin"

        return headers

    def _is_production(self) -> bool:
        env = os.getenv("ENVIRONMENT", "development").lower()
        return env in ["production", "prod", "live"]

    def _get_same_site_policy(self) -> str:
        # The provider redirects back cross-site, so "strict" would drop the session
        policy = (self._sanitize_env_value(os.getenv("COOKIE_SAMESITE", "lax")) or "lax").lower()
        return policy if policy in ["lax", "none"] else "lax"

    def _get_int(self, name: str, default: int) -> int:
        try:
            value = int(os.getenv(name, str(default)))
        except (ValueError, TypeError, OverflowError):
            return default
        return value if value > 0 else default

    def _sanitize_env_value(self, value: str | None) -> str | None:
        """Strip null bytes and CRLF so header injection is impossible."""
        if not value:
            return None
        sanitized = value.replace("\x00", "").replace("\r", "").replace("\n", "").strip()
        return sanitized or None
