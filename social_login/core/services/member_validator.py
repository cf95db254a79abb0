"""Record-level validation for members about to be written."""

import re

from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession

from social_login.core.database_models import MemberTable
from social_login.core.models import ValidationResult

EMAIL_TAKEN_MESSAGE = "It looks like this email has already been used"


class MemberValidator:
    """Checks required fields and email format on a member record."""

    def __init__(self, required_fields: list[str] | None = None):
        self.required_fields = required_fields or ["email"]

    def validate(self, member: MemberTable) -> ValidationResult:
        result = ValidationResult()

        for field in self.required_fields:
            value = getattr(member, field, None)
            if value is None or (isinstance(value, str) and not value.strip()):
                result.add_error(field, f"{self._label(field)} is required")

        email = member.email
        if email and not self.is_valid_email(email):
            result.add_error("email", "Valid email is required")
        elif email and len(email) > 254:  # RFC 5321 limit
            result.add_error("email", "Email address too long")

        return result

    def is_valid_email(self, email: str) -> bool:
        """Validate email format with basic injection checks."""
        pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
        if not re.match(pattern, email):
            return False

        if any(char in email for char in ["\n", "\r", "\x00", "<", ">"]):
            return False

        return True

    def email_collision(self, db_session: DBSession, member: MemberTable) -> bool:
        """True when another stored member already uses this member's email."""
        if not member.email:
            return False
        query = select(MemberTable.id).where(MemberTable.email == member.email)
        if member.id:
            query = query.where(MemberTable.id != member.id)
        return db_session.execute(query).first() is not None

    def _label(self, field: str) -> str:
        return field.replace("_", " ").capitalize()
