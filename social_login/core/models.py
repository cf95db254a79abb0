from enum import IntEnum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class AuthFlag(IntEnum):
    """Outcome of one callback cycle. Bitwise values so extensions may combine them."""

    LOGIN = 2  # already a member with this provider identity
    LINK = 4  # existing member matched, provider identity newly linked
    REGISTER = 8  # new member


class MemberResolutionOptions(BaseModel):
    link_on_match: bool = True
    # True, False, or the names of member fields that may be overwritten
    overwrite_existing_fields: bool | list[str] = False
    # Email changes the member's login identity, so it needs its own opt-in
    overwrite_email: bool = False


class ValidatedResponse(BaseModel):
    """A provider callback that passed structural and signature checks."""

    provider: str
    uid: str
    auth: dict[str, Any]
    timestamp: str
    signature: str

    @property
    def info(self) -> dict[str, Any]:
        return self.auth.get("info") or {}


class ValidationResult(BaseModel):
    """Record-level validation result for a member, keyed by field."""

    messages: dict[str, str] = Field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.messages

    def add_error(self, field: str, message: str) -> None:
        # First message per field wins
        self.messages.setdefault(field, message)


class CompletionForm(BaseModel):
    """State needed to (re)display the profile completion form."""

    fields: list[str]
    required_fields: list[str] = []
    data: dict[str, Any] = {}
    errors: dict[str, str] = {}


class CallbackOutcome(BaseModel):
    status: Literal["redirect", "permission_failure", "form_errors"]
    redirect_url: str | None = None
    flag: AuthFlag | None = None
    member_id: str | None = None
    identity_id: str | None = None
    message: str | None = None
    form: CompletionForm | None = None
    logged_in: bool = False

    @classmethod
    def redirect(cls, url: str, **kwargs: Any) -> "CallbackOutcome":
        return cls(status="redirect", redirect_url=url, **kwargs)

    @classmethod
    def permission_failure(cls, message: str, **kwargs: Any) -> "CallbackOutcome":
        return cls(status="permission_failure", message=message, **kwargs)


class ProfileCompletionSubmission(BaseModel):
    """Fields a member may supply on the profile completion form."""

    email: str | None = None
    first_name: str | None = None
    surname: str | None = None
    locale: str | None = None

    @field_validator("email", "first_name", "surname", "locale")
    @classmethod
    def strip_blank(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None
