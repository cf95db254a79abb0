"""Reading the provider response from the configured callback transport."""

import base64
import binascii
import json
import logging
from collections.abc import Mapping, MutableMapping
from typing import Any

from social_login.core.exceptions import ConfigurationError
from social_login.core.logging import log_event
from social_login.core.services.opauth_config_service import CALLBACK_TRANSPORTS

SESSION_RESPONSE_KEY = "opauth"
REQUEST_PARAMETER = "opauth"


def encode_response(response: dict[str, Any]) -> str:
    """Encode a response for the get/post transports."""
    return base64.b64encode(json.dumps(response, default=str).encode("utf-8")).decode("ascii")


def decode_response(value: str | None) -> dict[str, Any]:
    """Decode a get/post transport parameter; anything undecodable yields an empty response."""
    if not value:
        return {}
    try:
        decoded = json.loads(base64.b64decode(value, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        log_event(
            "opauth.transport_decode_failed",
            level=logging.WARNING,
            component="transport",
            operation="decode",
            error_type=type(e).__name__,
        )
        return {}
    return decoded if isinstance(decoded, dict) else {}


class CallbackTransport:
    """Reads the raw provider response exactly once per callback."""

    def __init__(self, mode: str):
        if mode not in CALLBACK_TRANSPORTS:
            raise ConfigurationError(f"Invalid transport method: {mode}")
        self.mode = mode

    def read(self, session: MutableMapping[str, Any], params: Mapping[str, Any]) -> dict[str, Any]:
        if self.mode == "session":
            response = session.get(SESSION_RESPONSE_KEY) or {}
        else:
            response = decode_response(params.get(REQUEST_PARAMETER))

        # The response may only be read once; stops replays via the back button
        session.pop(SESSION_RESPONSE_KEY, None)
        return response if isinstance(response, dict) else {}

    def write(self, session: MutableMapping[str, Any], response: dict[str, Any]) -> dict[str, str]:
        """Hand a signed response on to the callback; returns request parameters for get/post."""
        if self.mode == "session":
            session[SESSION_RESPONSE_KEY] = response
            return {}
        return {REQUEST_PARAMETER: encode_response(response)}
