import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Form, Query, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from social_login.api.auth import JWTService, StrategyCallbackError, StrategyRegistry
from social_login.api.dependencies import (
    get_callback_orchestrator,
    get_cookie_config,
    get_database_session,
    get_jwt_service,
    get_profile_completion_flow,
    get_settings,
    get_strategy_registry,
)
from social_login.api.error_responses import ConflictError
from social_login.api.routes.helpers import deliver_response, outcome_response, validate_provider_name
from social_login.core.exceptions import DuplicateIdentityError
from social_login.core.logging import log_event, mask_text, span
from social_login.core.models import ProfileCompletionSubmission
from social_login.core.services.callback_orchestrator import BACK_URL_KEY, CallbackOrchestrator
from social_login.core.services.opauth_config_service import OpauthSettings
from social_login.core.services.profile_completion import ProfileCompletionFlow
from social_login.core.services.session_cookie_config import SessionCookieConfig
from social_login.core.services.session_login import REMEMBER_ME_KEY
from social_login.core.services.signature import sign_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["opauth"])


def _stash_back_url(request: Request, back_url: str | None) -> None:
    if back_url:
        request.session[BACK_URL_KEY] = back_url


@router.get("/")
async def login_gateway(
    request: Request,
    settings: Annotated[OpauthSettings, Depends(get_settings)],
    registry: Annotated[StrategyRegistry, Depends(get_strategy_registry)],
    back_url: Annotated[str | None, Query(alias="BackURL")] = None,
):
    """List the enabled strategies and where each one starts."""
    _stash_back_url(request, back_url)
    return {
        "strategies": [{"name": name, "link": settings.strategy_path(name)} for name in registry.names()],
    }


@router.get("/strategy/{provider}")
async def start_strategy(
    provider: str,
    request: Request,
    registry: Annotated[StrategyRegistry, Depends(get_strategy_registry)],
    back_url: Annotated[str | None, Query(alias="BackURL")] = None,
):
    """Send the browser to the provider's authorization page."""
    provider = validate_provider_name(provider, registry)
    _stash_back_url(request, back_url)

    callback_url = str(request.url_for("opauth_strategy_callback", provider=provider))
    log_event(
        "opauth.strategy_start",
        component="auth",
        operation="start_strategy",
        provider=provider,
        callback_url_masked=mask_text(callback_url),
    )
    return await registry.get(provider).initiate(request, callback_url)


@router.get("/strategy/{provider}/callback", name="opauth_strategy_callback")
async def strategy_callback(
    provider: str,
    request: Request,
    settings: Annotated[OpauthSettings, Depends(get_settings)],
    registry: Annotated[StrategyRegistry, Depends(get_strategy_registry)],
):
    """Provider return: exchange the code, sign the auth section and hand it to /finished."""
    provider = validate_provider_name(provider, registry)

    try:
        auth = await registry.get(provider).callback(request)
        response = sign_response(auth, settings.security_salt, settings.security_iteration)
    except StrategyCallbackError as e:
        log_event(
            "opauth.strategy_callback_failed",
            level=logging.WARNING,
            component="auth",
            operation="strategy_callback",
            provider=provider,
            error_code=e.code,
        )
        response = {"error": {"provider": e.provider, "code": e.code, "message": e.message}}

    return deliver_response(request.session, settings, response)


@router.api_route("/finished", methods=["GET", "POST"], name="opauth_finished")
async def finished(
    request: Request,
    db_session: Annotated[DBSession, Depends(get_database_session)],
    orchestrator: Annotated[CallbackOrchestrator, Depends(get_callback_orchestrator)],
    cookie_config: Annotated[SessionCookieConfig, Depends(get_cookie_config)],
    jwt_service: Annotated[JWTService, Depends(get_jwt_service)],
):
    """Provider callback: validate the response, then log in, link, register or ask for details."""
    params = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        params.update({key: value for key, value in form.items() if isinstance(value, str)})

    client_ip = request.client.host if request.client else "unknown"

    with span("opauth.finished", component="auth", operation="finished", client_ip=client_ip):
        try:
            outcome = orchestrator.handle_callback(request.session, params, client_ip)
            db_session.commit()
        except (DuplicateIdentityError, IntegrityError) as e:
            db_session.rollback()
            log_event(
                "opauth.concurrent_registration",
                level=logging.WARNING,
                component="auth",
                operation="finished",
                error_type=type(e).__name__,
            )
            raise ConflictError("This account was registered by another request, please log in again") from e

    return outcome_response(outcome, bool(request.session.get(REMEMBER_ME_KEY)), cookie_config, jwt_service)


@router.get("/profilecompletion")
async def profile_completion(
    request: Request,
    flow: Annotated[ProfileCompletionFlow, Depends(get_profile_completion_flow)],
):
    """Fields, previously entered data and errors for the completion form."""
    return flow.form_state(request.session).model_dump()


@router.post("/RegisterForm")
async def register_form(
    request: Request,
    db_session: Annotated[DBSession, Depends(get_database_session)],
    flow: Annotated[ProfileCompletionFlow, Depends(get_profile_completion_flow)],
    cookie_config: Annotated[SessionCookieConfig, Depends(get_cookie_config)],
    jwt_service: Annotated[JWTService, Depends(get_jwt_service)],
    email: Annotated[str | None, Form()] = None,
    first_name: Annotated[str | None, Form()] = None,
    surname: Annotated[str | None, Form()] = None,
    locale: Annotated[str | None, Form()] = None,
):
    """Finish a suspended registration with the member's completed details."""
    submitted = {"email": email, "first_name": first_name, "surname": surname, "locale": locale}
    submission = ProfileCompletionSubmission(**{key: value for key, value in submitted.items() if value is not None})

    with span("opauth.register_form", component="auth", operation="register_form"):
        try:
            outcome = flow.resume(request.session, submission)
            db_session.commit()
        except (DuplicateIdentityError, IntegrityError) as e:
            db_session.rollback()
            raise ConflictError("This email or account was registered by another request, please log in again") from e

    return outcome_response(outcome, bool(request.session.get(REMEMBER_ME_KEY)), cookie_config, jwt_service)
