"""Signing and verification of provider callback payloads.

The `auth` section of a callback is serialized canonically (JSON, sorted keys,
compact separators) and reduced to a SHA-1 hex digest. The signature is that
digest re-hashed `iteration` times together with the shared salt and the
response timestamp, each round encoded in base 36.
"""

import hashlib
import hmac
import json
from datetime import UTC, datetime, timedelta
from typing import Any

_BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def canonical_auth_payload(auth: dict[str, Any]) -> str:
    return json.dumps(auth, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def auth_digest(auth: dict[str, Any]) -> str:
    return hashlib.sha1(canonical_auth_payload(auth).encode("utf-8")).hexdigest()


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def compute_signature(digest: str, timestamp: str, iteration: int, salt: str) -> str:
    if iteration <= 0:
        raise ValueError("Signature iteration must be positive")

    value = digest
    for _ in range(iteration):
        round_hash = hashlib.sha1(f"{value}{salt}{timestamp}".encode()).hexdigest()
        value = _to_base36(int(round_hash, 16))
    return value


def utc_timestamp(moment: datetime | None = None) -> str:
    return (moment or datetime.now(UTC)).isoformat()


def sign_response(
    auth: dict[str, Any], salt: str, iteration: int, timestamp: str | None = None
) -> dict[str, Any]:
    """Build a complete signed callback response for the given auth section."""
    timestamp = timestamp or utc_timestamp()
    return {
        "auth": auth,
        "timestamp": timestamp,
        "signature": compute_signature(auth_digest(auth), timestamp, iteration, salt),
    }


class SignatureVerifier:
    """Verifies callback signatures against the shared salt."""

    def __init__(self, salt: str, iteration: int = 300, timeout_seconds: int = 120):
        self.salt = salt
        self.iteration = iteration
        self.timeout = timedelta(seconds=timeout_seconds)

    def verify(self, digest: str, timestamp: str, signature: str) -> tuple[bool, str]:
        """Return (valid, reason). Reason is empty when the signature is valid."""
        issued_at = self._parse_timestamp(timestamp)
        if issued_at is None:
            return False, "Invalid timestamp"

        if issued_at < datetime.now(UTC) - self.timeout:
            return False, "Auth response expired"

        expected = compute_signature(digest, timestamp, self.iteration, self.salt)
        if not hmac.compare_digest(expected.lower().encode("utf-8"), str(signature).lower().encode("utf-8")):
            return False, "Signature does not validate"

        return True, ""

    def _parse_timestamp(self, timestamp: str) -> datetime | None:
        try:
            parsed = datetime.fromisoformat(str(timestamp))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed
