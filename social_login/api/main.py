import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from social_login.api.dependencies import get_cookie_config, get_session_secret, get_settings
from social_login.api.error_responses import ErrorDetail, SessionExpiredError
from social_login.api.middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from social_login.api.routes import opauth
from social_login.core.exceptions import ExpiredOrInvalidSession
from social_login.core.logging import init_logging, log_event


def create_app() -> FastAPI:
    """Build the social login application.

    Settings are loaded here so an invalid transport mode or a missing salt
    stops startup instead of failing the first callback.
    """
    init_logging(
        level=os.getenv("SOCIAL_LOGIN_LOG_LEVEL", "INFO"),
        fmt=os.getenv("SOCIAL_LOGIN_LOG_FORMAT", "json"),
        file_path=os.getenv("SOCIAL_LOGIN_LOG_FILE"),
        mask=os.getenv("SOCIAL_LOGIN_LOG_MASK", "false").lower() in ("true", "1", "yes", "on"),
        use_stderr=True,
    )

    settings = get_settings()
    cookie_config = get_cookie_config()

    app = FastAPI(
        title="Social Login API",
        description="OAuth social login: provider callback validation, identity linking and registration",
        version="0.1.0",
    )

    app.add_middleware(SecurityHeadersMiddleware, cookie_config=cookie_config)
    # Carries the callback response, BackURL and pending registration between requests
    app.add_middleware(SessionMiddleware, secret_key=get_session_secret(), **cookie_config.session_middleware_kwargs())
    # Outermost, so every log line has the request ID
    app.add_middleware(RequestIDMiddleware)

    app.include_router(opauth.router, prefix="/" + settings.opauth_path.strip("/"))

    @app.exception_handler(ExpiredOrInvalidSession)
    async def expired_session_exception_handler(request: Request, exc: ExpiredOrInvalidSession):
        log_event(
            "opauth.session_expired",
            component="auth",
            operation="profile_completion",
            has_identity_id=bool(exc.identity_id),
        )
        error = SessionExpiredError(str(exc))
        return JSONResponse(status_code=error.status_code, content={"detail": error.detail})

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
        details = []
        for error in exc.errors():
            field = ".".join(str(x) for x in error["loc"])
            details.append(ErrorDetail(type="validation", message=error["msg"], field=field))

        return JSONResponse(
            status_code=422,
            content={
                "error": "validation_failed",
                "message": "Request validation failed",
                "details": [detail.model_dump() for detail in details],
                "status_code": 422,
            },
        )

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    log_event(
        "app.created",
        component="api",
        operation="create_app",
        callback_transport=settings.callback_transport,
        opauth_path=settings.link(),
        strategies=sorted(settings.strategies),
    )
    return app
