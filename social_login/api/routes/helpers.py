"""Helper functions for the opauth routes."""

import html
from collections.abc import MutableMapping
from typing import Any
from urllib.parse import urlencode

from fastapi.responses import HTMLResponse, RedirectResponse, Response

from social_login.api.auth import JWTService, StrategyRegistry
from social_login.api.error_responses import ErrorDetail, NotFoundError, PermissionFailure, ValidationError
from social_login.core.models import CallbackOutcome
from social_login.core.services.callback_transport import CallbackTransport
from social_login.core.services.opauth_config_service import OpauthSettings
from social_login.core.services.session_cookie_config import SessionCookieConfig

ACCESS_TOKEN_COOKIE = "access_token"


def set_access_cookie(
    response: RedirectResponse,
    member_id: str,
    remember_me: bool,
    cookie_config: SessionCookieConfig,
    jwt_service: JWTService,
) -> None:
    """Mirror the session login in a signed access token cookie."""
    cookie_settings = cookie_config.get_cookie_settings()
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=jwt_service.create_access_token(member_id, remember_me),
        max_age=int(jwt_service.token_lifetime(remember_me).total_seconds()),
        httponly=True,
        secure=cookie_settings["secure"],
        samesite=cookie_settings["samesite"],
        domain=cookie_settings["domain"],
        path=cookie_settings["path"],
    )


def validate_provider_name(provider: str, registry: StrategyRegistry) -> str:
    provider = (provider or "").strip().lower()
    if not provider or registry.get(provider) is None:
        raise NotFoundError("Strategy", provider or None)
    return provider


def outcome_response(
    outcome: CallbackOutcome,
    remember_me: bool,
    cookie_config: SessionCookieConfig,
    jwt_service: JWTService,
) -> RedirectResponse:
    """Turn a callback outcome into a redirect, or raise the matching HTTP error."""
    if outcome.status == "permission_failure":
        raise PermissionFailure(outcome.message or "Login not possible.")

    if outcome.status == "form_errors":
        form = outcome.form
        details = [
            ErrorDetail(type="validation", message=message, field=field)
            for field, message in (form.errors.items() if form else [])
        ]
        raise ValidationError(
            "Please correct the highlighted fields",
            details=details,
            form=form.model_dump() if form else None,
        )

    response = RedirectResponse(outcome.redirect_url or "/", status_code=303)
    if outcome.logged_in and outcome.member_id:
        set_access_cookie(response, outcome.member_id, remember_me, cookie_config, jwt_service)
    return response


def deliver_response(
    session: MutableMapping[str, Any], settings: OpauthSettings, response: dict[str, Any]
) -> Response:
    """Send a provider response on to the callback using the configured transport."""
    params = CallbackTransport(settings.callback_transport).write(session, response)

    if settings.callback_transport == "post":
        fields = "".join(
            f'<input type="hidden" name="{html.escape(key)}" value="{html.escape(value)}">'
            for key, value in params.items()
        )
        return HTMLResponse(
            "<!DOCTYPE html><html><body onload=\"document.forms[0].submit()\">"
            f'<form method="post" action="{html.escape(settings.callback_path)}">{fields}'
            '<noscript><button type="submit">Continue</button></noscript></form></body></html>'
        )

    url = settings.callback_path
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url, status_code=303)
