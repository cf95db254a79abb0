"""Provider callback response validation service."""

from typing import Any

from social_login.core.exceptions import InvalidSignature, MissingComponent, ProviderError
from social_login.core.models import ValidatedResponse
from social_login.core.services.signature import SignatureVerifier, auth_digest


class ResponseValidator:
    """Validates a raw provider callback for completeness and authenticity.

    Checks run in a fixed order because provider errors are reported to the
    user differently from malformed or forged responses.
    """

    REQUIRED_RESPONSE_COMPONENTS = ("auth", "timestamp", "signature")
    REQUIRED_AUTH_COMPONENTS = ("provider", "uid")

    def __init__(self, verifier: SignatureVerifier):
        self.verifier = verifier

    def validate(self, response: dict[str, Any]) -> ValidatedResponse:
        if response.get("error"):
            raise ProviderError(self._provider_name(response), response["error"])

        self._require_components(self.REQUIRED_RESPONSE_COMPONENTS, response)

        auth = response["auth"]
        if not isinstance(auth, dict):
            raise MissingComponent("auth")
        self._require_components(self.REQUIRED_AUTH_COMPONENTS, auth)

        valid, reason = self.verifier.verify(auth_digest(auth), response["timestamp"], response["signature"])
        if not valid:
            raise InvalidSignature(reason)

        return ValidatedResponse(
            provider=str(auth["provider"]),
            uid=str(auth["uid"]),
            auth=auth,
            timestamp=str(response["timestamp"]),
            signature=str(response["signature"]),
        )

    def _require_components(self, components: tuple[str, ...], data: dict[str, Any]) -> None:
        for component in components:
            if not data.get(component):
                raise MissingComponent(component)

    def _provider_name(self, response: dict[str, Any]) -> str:
        error = response.get("error")
        if isinstance(error, dict) and error.get("provider"):
            return str(error["provider"])
        auth = response.get("auth")
        if isinstance(auth, dict) and auth.get("provider"):
            return str(auth["provider"])
        return "provider"
