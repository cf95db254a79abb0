import os
from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session as DBSession

from social_login.api.auth import JWTService, StrategyRegistry
from social_login.core.exceptions import ConfigurationError
from social_login.core.services.callback_orchestrator import CallbackOrchestrator
from social_login.core.services.extension_hooks import HookRegistry
from social_login.core.services.opauth_config_service import OpauthConfigService, OpauthSettings
from social_login.core.services.profile_completion import ProfileCompletionFlow
from social_login.core.services.session_cookie_config import SessionCookieConfig
from social_login.core.storage import DatabaseManager

MIN_SECRET_LENGTH = 32


@lru_cache
def get_settings() -> OpauthSettings:
    """Validated social login settings (cached)."""
    return OpauthConfigService().load_settings()


@lru_cache
def get_database_manager() -> DatabaseManager:
    """Get database manager instance (cached)."""
    return DatabaseManager(os.getenv("SOCIAL_LOGIN_DATABASE_URL", "sqlite:///./social_login.db"))


@lru_cache
def get_hooks() -> HookRegistry:
    """Process-wide extension point registry; applications register observers at startup."""
    return HookRegistry()


@lru_cache
def get_strategy_registry() -> StrategyRegistry:
    return StrategyRegistry.from_settings(get_settings())


def get_session_secret() -> str:
    secret_key = os.getenv("SOCIAL_LOGIN_SESSION_SECRET")
    if not secret_key:
        raise ConfigurationError("SOCIAL_LOGIN_SESSION_SECRET environment variable is required")
    if len(secret_key) < MIN_SECRET_LENGTH:
        raise ConfigurationError(
            f"SOCIAL_LOGIN_SESSION_SECRET must be at least {MIN_SECRET_LENGTH} characters long. "
            f"Current length: {len(secret_key)}"
        )
    return secret_key


@lru_cache
def get_jwt_service() -> JWTService:
    return JWTService(get_session_secret())


@lru_cache
def get_cookie_config() -> SessionCookieConfig:
    return SessionCookieConfig()


def get_database_session():
    """Get database session with proper cleanup."""
    db_manager = get_database_manager()
    db_session = db_manager.SessionLocal()
    try:
        yield db_session
    except Exception:
        db_session.rollback()
        raise
    finally:
        db_session.close()


def get_callback_orchestrator(
    db_session: Annotated[DBSession, Depends(get_database_session)],
    settings: Annotated[OpauthSettings, Depends(get_settings)],
    hooks: Annotated[HookRegistry, Depends(get_hooks)],
) -> CallbackOrchestrator:
    return CallbackOrchestrator(db_session, settings, hooks)


def get_profile_completion_flow(
    orchestrator: Annotated[CallbackOrchestrator, Depends(get_callback_orchestrator)],
) -> ProfileCompletionFlow:
    return ProfileCompletionFlow(orchestrator)
