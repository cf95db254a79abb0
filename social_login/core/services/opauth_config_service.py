import os
from typing import Any

from pydantic import BaseModel, Field

from social_login.core.exceptions import ConfigurationError
from social_login.core.models import MemberResolutionOptions
from social_login.core.services.field_mapper import DEFAULT_MEMBER_MAPPER

CALLBACK_TRANSPORTS = ("session", "get", "post")


class StrategyConfig(BaseModel):
    """OAuth client registration for one provider strategy."""

    name: str
    client_id: str
    client_secret: str
    server_metadata_url: str | None = None
    authorize_url: str | None = None
    access_token_url: str | None = None
    api_base_url: str | None = None
    scopes: list[str] = []


class OpauthSettings(BaseModel):
    callback_transport: str = "session"
    security_salt: str
    security_iteration: int = 300
    security_timeout: int = 120
    opauth_path: str = "/opauth"
    default_login_dest: str = "/"
    resolution: MemberResolutionOptions = Field(default_factory=MemberResolutionOptions)
    required_fields: list[str] = ["email"]
    registration_fields: list[str] = ["first_name", "surname", "email"]
    member_mapper: dict[str, dict[str, Any]] = Field(default_factory=lambda: dict(DEFAULT_MEMBER_MAPPER))
    strategies: dict[str, StrategyConfig] = {}

    def link(self, action: str | None = None) -> str:
        base = "/" + self.opauth_path.strip("/")
        return f"{base}/{action.strip('/')}" if action else f"{base}/"

    @property
    def callback_path(self) -> str:
        return self.link("finished")

    def strategy_path(self, provider: str) -> str:
        return self.link(f"strategy/{provider}")


class OpauthConfigService:
    """Builds and validates social login settings from the environment."""

    SUPPORTED_STRATEGIES = {
        "google": {
            "required_scopes": ["openid", "email", "profile"],
            "server_metadata_url": "https://accounts.google.com/.well-known/openid-configuration",
        },
        "github": {
            "required_scopes": ["user:email"],
            "authorize_url": "https://github.com/login/oauth/authorize",
            "access_token_url": "https://github.com/login/oauth/access_token",
            "api_base_url": "https://api.github.com/",
        },
        "facebook": {
            "required_scopes": ["email", "public_profile"],
            "authorize_url": "https://www.facebook.com/v19.0/dialog/oauth",
            "access_token_url": "https://graph.facebook.com/v19.0/oauth/access_token",
            "api_base_url": "https://graph.facebook.com/v19.0/",
        },
    }

    MIN_SALT_LENGTH = 32

    def load_settings(self, **overrides) -> OpauthSettings:
        """Read settings from environment variables, then apply keyword overrides."""
        values = {
            "callback_transport": os.getenv("SOCIAL_LOGIN_CALLBACK_TRANSPORT", "session"),
            "security_salt": os.getenv("SOCIAL_LOGIN_SECURITY_SALT", ""),
            "security_iteration": self._int_env("SOCIAL_LOGIN_SECURITY_ITERATION", 300),
            "security_timeout": self._int_env("SOCIAL_LOGIN_SECURITY_TIMEOUT", 120),
            "opauth_path": os.getenv("SOCIAL_LOGIN_PATH", "/opauth"),
            "default_login_dest": os.getenv("SOCIAL_LOGIN_DEFAULT_LOGIN_DEST", "/"),
            "resolution": MemberResolutionOptions(
                link_on_match=self._bool_env("SOCIAL_LOGIN_LINK_ON_MATCH", True),
                overwrite_existing_fields=self._overwrite_fields_env(),
                overwrite_email=self._bool_env("SOCIAL_LOGIN_OVERWRITE_EMAIL", False),
            ),
            "required_fields": self._list_env("SOCIAL_LOGIN_REQUIRED_FIELDS") or ["email"],
            "strategies": self._load_strategies(),
        }
        values.update(overrides)
        return self.validate_settings(OpauthSettings(**values))

    def validate_settings(self, settings: OpauthSettings) -> OpauthSettings:
        self.validate_transport(settings.callback_transport)

        if len(settings.security_salt) < self.MIN_SALT_LENGTH:
            raise ConfigurationError(
                f"SOCIAL_LOGIN_SECURITY_SALT must be at least {self.MIN_SALT_LENGTH} characters"
            )
        if settings.security_iteration <= 0:
            raise ConfigurationError("Security iteration must be a positive integer")
        if settings.security_timeout <= 0:
            raise ConfigurationError("Security timeout must be a positive number of seconds")

        return settings

    def validate_transport(self, transport: str) -> str:
        if transport not in CALLBACK_TRANSPORTS:
            raise ConfigurationError(f"Invalid transport method: {transport}")
        return transport

    def get_strategy_status(self) -> dict[str, str]:
        """Configuration status report for all supported strategies."""
        results = {}
        for name in self.SUPPORTED_STRATEGIES:
            try:
                self._strategy_from_env(name)
                results[name] = "configured"
            except ConfigurationError as e:
                results[name] = f"error: {e}"
        return results

    def _load_strategies(self) -> dict[str, StrategyConfig]:
        strategies = {}
        for name in self.SUPPORTED_STRATEGIES:
            try:
                strategies[name] = self._strategy_from_env(name)
            except ConfigurationError:
                continue
        return strategies

    def _strategy_from_env(self, name: str) -> StrategyConfig:
        prefix = name.upper()
        client_id = os.getenv(f"{prefix}_CLIENT_ID")
        client_secret = os.getenv(f"{prefix}_CLIENT_SECRET")

        if not client_id:
            raise ConfigurationError(f"Missing {prefix}_CLIENT_ID environment variable")
        if not client_secret:
            raise ConfigurationError(f"Missing {prefix}_CLIENT_SECRET environment variable")

        defaults = self.SUPPORTED_STRATEGIES[name]
        return StrategyConfig(
            name=name,
            client_id=client_id,
            client_secret=client_secret,
            server_metadata_url=defaults.get("server_metadata_url"),
            authorize_url=defaults.get("authorize_url"),
            access_token_url=defaults.get("access_token_url"),
            api_base_url=defaults.get("api_base_url"),
            scopes=defaults.get("required_scopes", []),
        )

    def _overwrite_fields_env(self) -> bool | list[str]:
        raw = (os.getenv("SOCIAL_LOGIN_OVERWRITE_FIELDS") or "false").strip()
        if raw.lower() in {"1", "true", "yes", "on"}:
            return True
        if raw.lower() in {"", "0", "false", "no", "off"}:
            return False
        return [field.strip() for field in raw.split(",") if field.strip()]

    def _bool_env(self, name: str, default: bool) -> bool:
        raw = os.getenv(name)
        if raw is None:
            return default
        return raw.strip().lower() in {"1", "true", "yes", "on"}

    def _int_env(self, name: str, default: int) -> int:
        raw = os.getenv(name)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigurationError(f"{name} must be an integer") from e

    def _list_env(self, name: str) -> list[str]:
        raw = os.getenv(name, "")
        return [item.strip() for item in raw.split(",") if item.strip()]
