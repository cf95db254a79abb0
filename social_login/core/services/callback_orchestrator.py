from collections.abc import Mapping, MutableMapping
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.orm import Session as DBSession

from social_login.core.database_models import IdentityTable, MemberTable
from social_login.core.exceptions import LoginPolicyRejected, OpauthValidationError, ProviderError
from social_login.core.logging import audit_log, log_event, mask_text, span
from social_login.core.models import AuthFlag, CallbackOutcome, ValidationResult
from social_login.core.services.callback_transport import CallbackTransport
from social_login.core.services.extension_hooks import (
    GET_CANT_LOGIN_BACK_URL,
    GET_SUCCESS_BACK_URL,
    ON_BEFORE_OPAUTH_REGISTER,
    HookRegistry,
)
from social_login.core.services.field_mapper import FieldMapper
from social_login.core.services.identity_store import IdentityStore
from social_login.core.services.member_resolver import MemberResolver
from social_login.core.services.member_validator import MemberValidator
from social_login.core.services.opauth_config_service import OpauthSettings
from social_login.core.services.response_validator import ResponseValidator
from social_login.core.services.session_login import SessionLogin
from social_login.core.services.signature import SignatureVerifier

BACK_URL_KEY = "BackURL"
PENDING_IDENTITY_KEY = "OpauthIdentityID"
FORM_DATA_KEY = "OpauthRegisterForm.data"
FORM_ERRORS_KEY = "OpauthRegisterForm.errors"

LOGIN_NOT_POSSIBLE_MESSAGE = "Login not possible."


class CallbackOrchestrator:
    """Drives one provider callback from raw response to login or profile completion.

    Steps run strictly in order: read transport, validate, resolve identity,
    resolve member, decide, act. Validation failures and login policy
    rejections become a permission failure outcome; they never escape as
    exceptions.
    """

    def __init__(
        self,
        db_session: DBSession,
        settings: OpauthSettings,
        hooks: HookRegistry | None = None,
        session_login: SessionLogin | None = None,
    ):
        self.db_session = db_session
        self.settings = settings
        self.hooks = hooks or HookRegistry()
        self.session_login = session_login or SessionLogin()

        self.transport = CallbackTransport(settings.callback_transport)
        self.validator = ResponseValidator(
            SignatureVerifier(settings.security_salt, settings.security_iteration, settings.security_timeout)
        )
        self.identity_store = IdentityStore(db_session, self.hooks)
        self.member_resolver = MemberResolver(db_session, FieldMapper(settings.member_mapper))
        self.member_validator = MemberValidator(settings.required_fields)

    def handle_callback(
        self,
        session: MutableMapping[str, Any],
        params: Mapping[str, Any],
        client_ip: str | None = None,
    ) -> CallbackOutcome:
        with span("opauth.callback", component="auth", operation="handle_callback"):
            response = self.transport.read(session, params)

            try:
                validated = self.validator.validate(response)
            except OpauthValidationError as e:
                return self._validation_failure(e, client_ip)

            identity = self.identity_store.resolve_identity(validated.auth)
            member = self.member_resolver.find_or_create_member(identity, self.settings.resolution)

            member_persisted = inspect(member).persistent
            identity_persisted = self.identity_store.is_persisted(identity)

            if member_persisted and self.member_validator.validate(member).is_valid:
                if not identity_persisted:
                    flag = AuthFlag.LINK
                    identity.member_id = member.id
                    self.identity_store.save(identity)
                else:
                    flag = AuthFlag.LOGIN
                    # Identity left unlinked by an abandoned registration
                    if identity.member_id is None:
                        identity.member_id = member.id
                    if self.identity_store.member_link_changed(identity):
                        self.identity_store.save(identity)
            else:
                flag = AuthFlag.REGISTER
                # Persist now so the identity key survives an abandoned registration
                self.identity_store.save(identity)

                validation = self.member_validator.validate(member)
                if not validation.is_valid:
                    return self._await_profile_completion(session, identity, member, validation)

                self.register_member(member, identity)

            log_event(
                "opauth.callback_decided",
                component="auth",
                operation="decide",
                provider=identity.provider,
                flag=flag.name,
                member_persisted=member_persisted,
                identity_persisted=identity_persisted,
            )
            return self.complete_login(session, member, identity, flag)

    def register_member(self, member: MemberTable, identity: IdentityTable) -> MemberTable:
        """Write a new member and link the identity to it."""
        self.hooks.invoke(ON_BEFORE_OPAUTH_REGISTER, member, identity)
        self.db_session.add(member)
        self.db_session.flush()

        identity.member_id = member.id
        self.identity_store.save(identity)

        log_event(
            "member.registered",
            component="auth",
            operation="register_member",
            member_id=member.id,
            provider=identity.provider,
            email=mask_text(member.email) if member.email else None,
        )
        return member

    def complete_login(
        self,
        session: MutableMapping[str, Any],
        member: MemberTable,
        identity: IdentityTable,
        flag: AuthFlag,
    ) -> CallbackOutcome:
        try:
            return self.login_and_redirect(session, member, identity, flag)
        except LoginPolicyRejected as e:
            audit_log("opauth.login_rejected", e.member_id, provider=identity.provider, flag=flag.name)
            return CallbackOutcome.permission_failure(
                LOGIN_NOT_POSSIBLE_MESSAGE, flag=flag, member_id=member.id, identity_id=identity.id
            )

    def login_and_redirect(
        self,
        session: MutableMapping[str, Any],
        member: MemberTable,
        identity: IdentityTable,
        flag: AuthFlag,
    ) -> CallbackOutcome:
        # Logging in regenerates the session, so keep the return URL first
        back_url = session.get(BACK_URL_KEY)

        can_log_in = self.session_login.can_log_in(member)
        if not can_log_in:
            redirect_url = self.hooks.last_result(GET_CANT_LOGIN_BACK_URL, member, identity, can_log_in, flag)
            if redirect_url:
                return CallbackOutcome.redirect(
                    redirect_url, flag=flag, member_id=member.id, identity_id=identity.id
                )
            raise LoginPolicyRejected(member.id)

        redirect_url = back_url if self._is_local_url(back_url) else self.settings.default_login_dest
        redirect_url = (
            self.hooks.last_result(GET_SUCCESS_BACK_URL, member, identity, redirect_url, flag) or redirect_url
        )

        self.session_login.log_in(member, True, session)

        for key in (PENDING_IDENTITY_KEY, BACK_URL_KEY, FORM_DATA_KEY, FORM_ERRORS_KEY):
            session.pop(key, None)

        return CallbackOutcome.redirect(
            redirect_url,
            flag=flag,
            member_id=member.id,
            identity_id=identity.id,
            logged_in=True,
        )

    def _await_profile_completion(
        self,
        session: MutableMapping[str, Any],
        identity: IdentityTable,
        member: MemberTable,
        validation: ValidationResult,
    ) -> CallbackOutcome:
        session[PENDING_IDENTITY_KEY] = identity.id
        session[FORM_DATA_KEY] = member.profile_data()
        session[FORM_ERRORS_KEY] = validation.messages

        log_event(
            "opauth.profile_completion_required",
            component="auth",
            operation="decide",
            provider=identity.provider,
            identity_id=identity.id,
            invalid_fields=sorted(validation.messages),
        )
        return CallbackOutcome.redirect(
            self.settings.link("profilecompletion"),
            flag=AuthFlag.REGISTER,
            identity_id=identity.id,
        )

    def _validation_failure(self, error: OpauthValidationError, client_ip: str | None) -> CallbackOutcome:
        audit_log(
            "opauth.callback_rejected",
            None,
            client_ip,
            error_code=error.code,
            error_type=type(error).__name__,
            **{f"detail_{key}": value for key, value in error.data.items() if key != "error"},
        )

        if isinstance(error, ProviderError):
            message = f"There was a problem logging in with {error.provider_name}."
        else:
            message = f"There was a problem logging in - {error.message}"
        return CallbackOutcome.permission_failure(message)

    def _is_local_url(self, url: str | None) -> bool:
        return bool(url) and url.startswith("/") and not url.startswith("//") and "\\" not in url
