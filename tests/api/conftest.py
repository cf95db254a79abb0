"""Shared test fixtures for API tests."""

import pytest
from fastapi.responses import RedirectResponse
from fastapi.testclient import TestClient

from social_login.api.auth import StrategyRegistry
from social_login.api.dependencies import (
    get_cookie_config,
    get_database_manager,
    get_hooks,
    get_jwt_service,
    get_settings,
    get_strategy_registry,
)
from social_login.api.main import create_app


class FakeStrategy:
    """Stands in for an authlib client; records callback URLs and returns a preset auth section."""

    name = "google"

    def __init__(self):
        self.callback_urls = []
        self.auth = None
        self.error = None

    async def initiate(self, request, callback_url):
        self.callback_urls.append(callback_url)
        return RedirectResponse(f"https://accounts.example.test/authorize?redirect_uri={callback_url}", status_code=302)

    async def callback(self, request):
        if self.error is not None:
            raise self.error
        return self.auth


def _clear_caches():
    for cached in (get_settings, get_database_manager, get_strategy_registry, get_jwt_service, get_cookie_config):
        cached.cache_clear()


@pytest.fixture
def api_settings(settings):
    # Request transport, so tests can deliver the signed response in the URL
    settings.callback_transport = "get"
    return settings


@pytest.fixture
def fake_strategy():
    return FakeStrategy()


@pytest.fixture
def app(tmp_path, monkeypatch, api_settings, hooks, fake_strategy):
    monkeypatch.setenv("SOCIAL_LOGIN_DATABASE_URL", f"sqlite:///{tmp_path / 'api_test.db'}")
    monkeypatch.setenv("SOCIAL_LOGIN_LOG_LEVEL", "WARNING")
    _clear_caches()

    application = create_app()

    registry = StrategyRegistry()
    registry.register(fake_strategy)
    application.dependency_overrides[get_settings] = lambda: api_settings
    application.dependency_overrides[get_hooks] = lambda: hooks
    application.dependency_overrides[get_strategy_registry] = lambda: registry

    yield application

    application.dependency_overrides.clear()
    get_database_manager().dispose()
    _clear_caches()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_query(app):
    """Run a function against the API's database in its own session."""

    def _run(func):
        with get_database_manager().session_scope() as db:
            return func(db)

    return _run
