"""Unit tests for ResponseValidator."""

from datetime import UTC, datetime, timedelta

import pytest

from social_login.core.exceptions import InvalidSignature, MissingComponent, ProviderError
from social_login.core.services.response_validator import ResponseValidator
from social_login.core.services.signature import SignatureVerifier, sign_response, utc_timestamp

SALT = "unit-test-salt-with-at-least-32-characters"


@pytest.fixture
def validator():
    return ResponseValidator(SignatureVerifier(SALT, iteration=3, timeout_seconds=120))


def _signed(auth, **overrides):
    response = sign_response(auth, SALT, 3)
    response.update(overrides)
    return response


class TestResponseValidator:
    """Test validation order and outcomes for provider callbacks."""

    def test_valid_response(self, validator):
        auth = {"provider": "google", "uid": "1001", "info": {"email": "jane@example.com"}}

        result = validator.validate(_signed(auth))

        assert result.provider == "google"
        assert result.uid == "1001"
        assert result.info == {"email": "jane@example.com"}

    def test_numeric_uid_is_normalised_to_string(self, validator):
        result = validator.validate(_signed({"provider": "github", "uid": 42}))

        assert result.uid == "42"

    def test_provider_error_uses_error_provider(self, validator):
        response = {"error": {"provider": "facebook", "code": "access_denied", "message": "User denied"}}

        with pytest.raises(ProviderError) as exc_info:
            validator.validate(response)

        assert exc_info.value.provider_name == "facebook"
        assert exc_info.value.code == 1

    def test_provider_error_falls_back_to_auth_provider(self, validator):
        response = {"error": {"code": "denied"}, "auth": {"provider": "github"}}

        with pytest.raises(ProviderError) as exc_info:
            validator.validate(response)

        assert exc_info.value.provider_name == "github"

    def test_provider_error_generic_name(self, validator):
        with pytest.raises(ProviderError) as exc_info:
            validator.validate({"error": "something broke"})

        assert exc_info.value.provider_name == "provider"

    def test_provider_error_checked_before_signature(self, validator):
        response = _signed({"provider": "google", "uid": "1"}, signature="forged", error={"provider": "google"})

        with pytest.raises(ProviderError):
            validator.validate(response)

    @pytest.mark.parametrize("component", ["auth", "timestamp", "signature"])
    def test_missing_top_level_component(self, validator, component):
        response = _signed({"provider": "google", "uid": "1"})
        del response[component]

        with pytest.raises(MissingComponent) as exc_info:
            validator.validate(response)

        assert exc_info.value.component_name == component
        assert exc_info.value.code == 2

    def test_empty_response_reports_auth_first(self, validator):
        with pytest.raises(MissingComponent) as exc_info:
            validator.validate({})

        assert exc_info.value.component_name == "auth"

    def test_missing_uid(self, validator):
        with pytest.raises(MissingComponent) as exc_info:
            validator.validate(_signed({"provider": "google"}))

        assert exc_info.value.component_name == "uid"

    def test_empty_provider(self, validator):
        with pytest.raises(MissingComponent) as exc_info:
            validator.validate(_signed({"provider": "", "uid": "1"}))

        assert exc_info.value.component_name == "provider"

    def test_non_mapping_auth(self, validator):
        with pytest.raises(MissingComponent, match="Required component missing"):
            validator.validate({"auth": "not-a-dict", "timestamp": utc_timestamp(), "signature": "abc"})

    def test_forged_signature(self, validator):
        response = _signed({"provider": "google", "uid": "1"}, signature="forged")

        with pytest.raises(InvalidSignature) as exc_info:
            validator.validate(response)

        assert exc_info.value.reason == "Signature does not validate"
        assert exc_info.value.code == 3

    def test_modified_auth_after_signing(self, validator):
        response = _signed({"provider": "google", "uid": "1", "info": {"email": "jane@example.com"}})
        response["auth"]["info"]["email"] = "attacker@example.com"

        with pytest.raises(InvalidSignature):
            validator.validate(response)

    def test_expired_response(self, validator):
        old = utc_timestamp(datetime.now(UTC) - timedelta(minutes=10))
        response = sign_response({"provider": "google", "uid": "1"}, SALT, 3, timestamp=old)

        with pytest.raises(InvalidSignature) as exc_info:
            validator.validate(response)

        assert exc_info.value.reason == "Auth response expired"
