"""Unit tests for MemberValidator."""

from social_login.core.database_models import MemberTable
from social_login.core.services.member_validator import MemberValidator


class TestMemberValidator:
    """Test record-level member validation."""

    def test_valid_member(self):
        result = MemberValidator().validate(MemberTable(email="jane@example.com"))

        assert result.is_valid is True
        assert result.messages == {}

    def test_missing_email(self):
        result = MemberValidator().validate(MemberTable())

        assert result.is_valid is False
        assert result.messages == {"email": "Email is required"}

    def test_blank_required_field(self):
        validator = MemberValidator(["email", "first_name"])

        result = validator.validate(MemberTable(email="jane@example.com", first_name="   "))

        assert result.messages == {"first_name": "First name is required"}

    def test_invalid_email(self):
        result = MemberValidator().validate(MemberTable(email="not-an-email"))

        assert result.messages == {"email": "Valid email is required"}

    def test_email_too_long(self):
        email = "a" * 250 + "@example.com"

        result = MemberValidator().validate(MemberTable(email=email))

        assert result.messages == {"email": "Email address too long"}

    def test_first_error_per_field_wins(self):
        result = MemberValidator().validate(MemberTable(email=""))

        assert result.messages["email"] == "Email is required"

    def test_header_injection_rejected(self):
        validator = MemberValidator()

        assert validator.is_valid_email("jane@example.com") is True
        assert validator.is_valid_email("jane@example.com\r\nBcc: x@example.com") is False

    def test_email_collision(self, db_session, make_member):
        existing = make_member(email="taken@example.com")
        validator = MemberValidator()

        assert validator.email_collision(db_session, MemberTable(email="taken@example.com")) is True
        assert validator.email_collision(db_session, MemberTable(email="free@example.com")) is False
        assert validator.email_collision(db_session, existing) is False
        assert validator.email_collision(db_session, MemberTable()) is False
