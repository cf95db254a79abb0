"""Request correlation and response hardening middleware."""

import logging
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from social_login.core.logging import log_event, set_request_id
from social_login.core.services.session_cookie_config import SessionCookieConfig


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware for adding request ID to all logs and responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id

        # Set in logging context for all subsequent logs
        set_request_id(request_id)

        log_event(
            "request.started",
            level=logging.INFO,
            component="middleware",
            operation="request_id",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            log_event(
                "request.completed",
                level=logging.INFO,
                component="middleware",
                operation="request_id",
                status_code=response.status_code,
            )
            return response
        finally:
            # Clear request ID from context
            set_request_id(None)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds the cookie-policy security headers to every response."""

    def __init__(self, app, cookie_config: SessionCookieConfig | None = None):
        super().__init__(app)
        self.cookie_config = cookie_config or SessionCookieConfig()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for header, value in self.cookie_config.get_response_headers().items():
            response.headers.setdefault(header, value)
        return response
