from fastapi import HTTPException, status
from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Detailed error information."""

    type: str
    message: str
    field: str | None = None


class StandardErrorResponse(BaseModel):
    """Standardized error response format."""

    error: str
    message: str
    details: list[ErrorDetail] | None = None
    status_code: int


class PermissionFailure(HTTPException):
    """The callback was rejected or the member may not log in."""

    def __init__(self, message: str, details: list[ErrorDetail] | None = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "permission_failure",
                "message": message,
                "details": [detail.model_dump() for detail in (details or [])],
                "status_code": status.HTTP_403_FORBIDDEN,
            },
        )


class SessionExpiredError(HTTPException):
    """Profile completion was requested without a pending identity."""

    def __init__(self, message: str = "Your login session has expired, please start again"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "session_expired",
                "message": message,
                "details": [],
                "status_code": status.HTTP_401_UNAUTHORIZED,
            },
        )


class ValidationError(HTTPException):
    """Standardized validation error."""

    def __init__(
        self,
        message: str = "Input validation failed",
        field: str | None = None,
        details: list[ErrorDetail] | None = None,
        form: dict | None = None,
    ):
        error_details = details or []
        if field and message:
            error_details.append(ErrorDetail(type="validation", message=message, field=field))

        detail = {
            "error": "validation_failed",
            "message": message,
            "details": [detail.model_dump() for detail in error_details],
            "status_code": status.HTTP_422_UNPROCESSABLE_CONTENT,
        }
        if form is not None:
            detail["form"] = form

        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=detail)


class OAuthError(HTTPException):
    """Standardized OAuth error."""

    def __init__(self, message: str, provider: str | None = None, details: list[ErrorDetail] | None = None):
        error_details = details or []
        if provider:
            error_details.append(ErrorDetail(type="oauth", message=f"Provider: {provider}"))

        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "oauth_error",
                "message": message,
                "details": [detail.model_dump() for detail in error_details],
                "status_code": status.HTTP_400_BAD_REQUEST,
            },
        )


class NotFoundError(HTTPException):
    """Standardized not found error."""

    def __init__(self, resource: str, identifier: str | None = None):
        message = f"{resource} not found"
        if identifier:
            message += f" (ID: {identifier})"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "not_found",
                "message": message,
                "details": [ErrorDetail(type="not_found", message=f"Resource: {resource}").model_dump()],
                "status_code": status.HTTP_404_NOT_FOUND,
            },
        )


class ConflictError(HTTPException):
    """A concurrent request already wrote the same record."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "conflict",
                "message": message,
                "details": [],
                "status_code": status.HTTP_409_CONFLICT,
            },
        )
