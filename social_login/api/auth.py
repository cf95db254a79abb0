import logging
import re
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from authlib.integrations.base_client import OAuthError as AuthlibOAuthError
from authlib.integrations.starlette_client import OAuth
from jose import JWTError, jwt
from starlette.requests import Request
from starlette.responses import Response

from social_login.core.logging import log_event, span
from social_login.core.services.opauth_config_service import OpauthSettings, StrategyConfig

logger = logging.getLogger(__name__)


def strategy_segment(class_name: str) -> str:
    """URL segment for a strategy class, e.g. ``GoogleStrategy`` -> ``google``."""
    return re.sub(r"Strategy$", "", class_name).lower()


class StrategyCallbackError(Exception):
    """The provider return could not be turned into an auth section."""

    def __init__(self, provider: str, code: str, message: str | None = None):
        self.provider = provider
        self.code = code
        self.message = message or code
        super().__init__(f"{provider}: {self.message}")


class Strategy(Protocol):
    name: str

    async def initiate(self, request: Request, callback_url: str) -> Response: ...

    async def callback(self, request: Request) -> dict[str, Any]: ...


class AuthlibStrategy:
    """Provider round trip through an authlib Starlette client.

    ``initiate`` sends the browser to the provider. ``callback`` exchanges the
    returned code for a token and normalises the provider profile into the
    ``provider``/``uid``/``info``/``credentials``/``raw`` auth section that gets
    signed and handed to ``/finished``.
    """

    uid_key = "id"

    def __init__(self, client: Any):
        self.client = client
        self.name = strategy_segment(type(self).__name__)

    async def initiate(self, request: Request, callback_url: str) -> Response:
        with span("strategy.initiate", component="strategy", operation="initiate", provider=self.name):
            return await self.client.authorize_redirect(request, callback_url)

    async def callback(self, request: Request) -> dict[str, Any]:
        with span("strategy.callback", component="strategy", operation="callback", provider=self.name):
            try:
                token = await self.client.authorize_access_token(request)
            except AuthlibOAuthError as e:
                raise StrategyCallbackError(self.name, e.error or "access_denied", e.description) from e
            if not token:
                raise StrategyCallbackError(self.name, "token_exchange_failed", "Failed to obtain access token")

            profile = await self.fetch_profile(token)
            if not profile or profile.get(self.uid_key) in (None, ""):
                raise StrategyCallbackError(self.name, "userinfo_error", "Provider returned no user id")

            return {
                "provider": self.name,
                "uid": str(profile[self.uid_key]),
                "info": {key: value for key, value in self.profile_info(profile).items() if value is not None},
                "credentials": self._credentials(token),
                "raw": profile,
            }

    async def fetch_profile(self, token: dict[str, Any]) -> dict[str, Any]:
        return dict(token.get("userinfo") or await self.client.userinfo(token=token))

    def profile_info(self, profile: dict[str, Any]) -> dict[str, Any]:
        return {"name": profile.get("name"), "email": profile.get("email")}

    async def _get_json(self, path: str, token: dict[str, Any], **kwargs) -> Any:
        resp = await self.client.get(path, token=token, **kwargs)
        if resp.status_code != 200:
            raise StrategyCallbackError(
                self.name, "userinfo_error", f"Failed to fetch {path} (HTTP {resp.status_code})"
            )
        return resp.json()

    def _credentials(self, token: dict[str, Any]) -> dict[str, Any]:
        credentials = {
            "token": token.get("access_token"),
            "refresh_token": token.get("refresh_token"),
            "expires": token.get("expires_at"),
        }
        return {key: value for key, value in credentials.items() if value is not None}


class GoogleStrategy(AuthlibStrategy):
    uid_key = "sub"

    def profile_info(self, profile: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": profile.get("name"),
            "email": profile.get("email"),
            "first_name": profile.get("given_name"),
            "last_name": profile.get("family_name"),
            "image": profile.get("picture"),
        }


class GitHubStrategy(AuthlibStrategy):
    async def fetch_profile(self, token: dict[str, Any]) -> dict[str, Any]:
        profile = await self._get_json("user", token)

        # Private emails are only listed on the emails endpoint
        if not profile.get("email"):
            try:
                emails = await self._get_json("user/emails", token)
            except StrategyCallbackError:
                emails = []
            primary = next((e for e in emails if e.get("primary") and e.get("verified")), None)
            if primary:
                profile["email"] = primary["email"]
        return profile

    def profile_info(self, profile: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": profile.get("name") or profile.get("login"),
            "email": profile.get("email"),
            "nickname": profile.get("login"),
            "image": profile.get("avatar_url"),
            "urls": {"github": profile["html_url"]} if profile.get("html_url") else None,
        }


class FacebookStrategy(AuthlibStrategy):
    PROFILE_FIELDS = "id,name,email,first_name,last_name,picture,locale"

    async def fetch_profile(self, token: dict[str, Any]) -> dict[str, Any]:
        return await self._get_json("me", token, params={"fields": self.PROFILE_FIELDS})

    def profile_info(self, profile: dict[str, Any]) -> dict[str, Any]:
        picture = (profile.get("picture") or {}).get("data") or {}
        return {
            "name": profile.get("name"),
            "email": profile.get("email"),
            "first_name": profile.get("first_name"),
            "last_name": profile.get("last_name"),
            "image": picture.get("url"),
        }


STRATEGY_CLASSES: dict[str, type[AuthlibStrategy]] = {
    strategy_segment(cls.__name__): cls for cls in (GoogleStrategy, GitHubStrategy, FacebookStrategy)
}


class StrategyRegistry:
    def __init__(self):
        self._strategies: dict[str, Strategy] = {}

    @classmethod
    def from_settings(cls, settings: OpauthSettings, oauth: OAuth | None = None) -> "StrategyRegistry":
        """Register an authlib client for every configured strategy."""
        oauth = oauth or OAuth()
        registry = cls()
        for name, config in settings.strategies.items():
            strategy_class = STRATEGY_CLASSES.get(name)
            if strategy_class is None:
                logger.warning(f"No strategy class for configured provider {name}")
                continue
            client = cls._register_client(oauth, config)
            registry.register(strategy_class(client))
        return registry

    @staticmethod
    def _register_client(oauth: OAuth, config: StrategyConfig):
        kwargs: dict[str, Any] = {"client_kwargs": {"scope": " ".join(config.scopes)}}
        if config.server_metadata_url:
            kwargs["server_metadata_url"] = config.server_metadata_url
        else:
            kwargs["authorize_url"] = config.authorize_url
            kwargs["access_token_url"] = config.access_token_url
            kwargs["api_base_url"] = config.api_base_url

        return oauth.register(
            name=config.name,
            client_id=config.client_id,
            client_secret=config.client_secret,
            **kwargs,
        )

    def register(self, strategy: Strategy) -> None:
        self._strategies[strategy.name] = strategy
        log_event("strategy.registered", component="strategy", operation="register", provider=strategy.name)

    def get(self, name: str) -> Strategy | None:
        return self._strategies.get(name)

    def names(self) -> list[str]:
        return sorted(self._strategies)


class JWTService:
    """Issues the ``access_token`` cookie that mirrors a session login."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 60,
        remember_me_expire_days: int = 30,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expire_minutes = access_token_expire_minutes
        self.remember_me_expire_days = remember_me_expire_days

    def token_lifetime(self, remember_me: bool) -> timedelta:
        if remember_me:
            return timedelta(days=self.remember_me_expire_days)
        return timedelta(minutes=self.access_token_expire_minutes)

    def create_access_token(self, member_id: str, remember_me: bool = False) -> str:
        now = datetime.now(UTC)
        to_encode = {
            "sub": member_id,
            "remember_me": remember_me,
            "exp": now + self.token_lifetime(remember_me),
            "iat": now,
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict[str, Any] | None:
        """Decoded claims, or None when the token is expired, forged or malformed."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            log_event(
                "auth.jwt_verification_failed",
                level=logging.WARNING,
                component="auth",
                operation="verify_token",
                error_type=type(e).__name__,
            )
            return None

        if not payload.get("sub"):
            return None
        return payload
