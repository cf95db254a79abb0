from collections.abc import MutableMapping
from typing import Any

from social_login.core.database_models import IdentityTable, MemberTable
from social_login.core.exceptions import ExpiredOrInvalidSession
from social_login.core.logging import log_event
from social_login.core.models import AuthFlag, CallbackOutcome, CompletionForm, ProfileCompletionSubmission
from social_login.core.services.callback_orchestrator import (
    FORM_DATA_KEY,
    FORM_ERRORS_KEY,
    PENDING_IDENTITY_KEY,
    CallbackOrchestrator,
)
from social_login.core.services.member_validator import EMAIL_TAKEN_MESSAGE


class ProfileCompletionFlow:
    """Finishes a registration that was suspended for missing or invalid member fields.

    The pending identity id is carried in the session under
    ``OpauthIdentityID``. Previously entered data and per-field errors are
    kept in the session too, so a failed submission redisplays the form
    without losing anything the member typed.
    """

    def __init__(self, orchestrator: CallbackOrchestrator):
        self.orchestrator = orchestrator
        self.db_session = orchestrator.db_session
        self.settings = orchestrator.settings
        self.identity_store = orchestrator.identity_store
        self.member_validator = orchestrator.member_validator

    def form_state(self, session: MutableMapping[str, Any]) -> CompletionForm:
        self.pending_identity(session)
        return self._form(session.get(FORM_DATA_KEY) or {}, session.get(FORM_ERRORS_KEY) or {})

    def resume(
        self, session: MutableMapping[str, Any], submission: ProfileCompletionSubmission
    ) -> CallbackOutcome:
        identity = self.pending_identity(session)

        data = dict(session.get(FORM_DATA_KEY) or {})
        data.update(submission.model_dump(exclude_unset=True))

        member = MemberTable()
        member.update(data)

        validation = self.member_validator.validate(member)
        if self.member_validator.email_collision(self.db_session, member):
            validation.add_error("email", EMAIL_TAKEN_MESSAGE)

        if not validation.is_valid:
            session[FORM_DATA_KEY] = member.profile_data()
            session[FORM_ERRORS_KEY] = validation.messages

            log_event(
                "opauth.profile_completion_rejected",
                component="auth",
                operation="resume",
                identity_id=identity.id,
                invalid_fields=sorted(validation.messages),
            )
            return CallbackOutcome(
                status="form_errors",
                flag=AuthFlag.REGISTER,
                identity_id=identity.id,
                form=self._form(member.profile_data(), validation.messages),
            )

        self.orchestrator.register_member(member, identity)
        return self.orchestrator.complete_login(session, member, identity, AuthFlag.REGISTER)

    def pending_identity(self, session: MutableMapping[str, Any]) -> IdentityTable:
        identity_id = session.get(PENDING_IDENTITY_KEY)
        identity = self.identity_store.get_by_id(identity_id)
        if identity is None:
            raise ExpiredOrInvalidSession(identity_id)
        return identity

    def _form(self, data: dict[str, Any], errors: dict[str, str]) -> CompletionForm:
        return CompletionForm(
            fields=self.settings.registration_fields,
            required_fields=self.member_validator.required_fields,
            data=data,
            errors=errors,
        )
