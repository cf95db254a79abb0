"""Domain exceptions for the social login core."""

from typing import Any


class ConfigurationError(Exception):
    """Raised when the social login configuration is unusable."""

    pass


class OpauthValidationError(Exception):
    """Base class for a rejected provider callback.

    `code` identifies the failure family so the user-facing message can
    differ between provider errors and malformed or forged responses.
    """

    code = 0

    def __init__(self, message: str, data: dict[str, Any] | None = None):
        self.message = message
        self.data = data or {}
        super().__init__(message)


class ProviderError(OpauthValidationError):
    """The upstream provider reported a failure."""

    code = 1

    def __init__(self, provider_name: str, error: Any = None):
        self.provider_name = provider_name
        self.error = error
        super().__init__("Oauth provider error", {"provider": provider_name, "error": error})


class MissingComponent(OpauthValidationError):
    """A required component of the callback payload is absent or empty."""

    code = 2

    def __init__(self, component_name: str):
        self.component_name = component_name
        super().__init__("Required component missing", {"component": component_name})


class InvalidSignature(OpauthValidationError):
    """The callback payload failed the authenticity check."""

    code = 3

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__("Invalid auth response", {"reason": reason})


class LoginPolicyRejected(Exception):
    """The resolved member is not permitted to log in."""

    def __init__(self, member_id: str | None):
        self.member_id = member_id
        super().__init__("Login not possible.")


class ExpiredOrInvalidSession(Exception):
    """Profile completion was resumed without a valid pending identity."""

    def __init__(self, identity_id: str | None = None):
        self.identity_id = identity_id
        super().__init__("Your login session has expired, please start again")


class DuplicateIdentityError(Exception):
    """A concurrent callback persisted the same provider identity first."""

    def __init__(self, provider: str, uid: str):
        self.provider = provider
        self.uid = uid
        super().__init__(f"Identity {provider}:{uid} already exists")
