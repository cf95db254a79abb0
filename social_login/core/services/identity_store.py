from typing import Any

from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from social_login.core.database_models import IdentityTable
from social_login.core.exceptions import DuplicateIdentityError
from social_login.core.logging import log_event
from social_login.core.services.extension_hooks import (
    ON_AFTER_CREATE,
    ON_BEFORE_CREATE,
    ON_MEMBER_LINKED,
    HookRegistry,
)


class IdentityStore:
    def __init__(self, db_session: DBSession, hooks: HookRegistry | None = None):
        self.db_session = db_session
        self.hooks = hooks or HookRegistry()

    def resolve_identity(self, auth: dict[str, Any]) -> IdentityTable:
        """Find the identity for (provider, uid) or build a new unsaved one."""
        provider = str(auth["provider"])
        uid = str(auth["uid"])

        identity = self.get_by_provider_uid(provider, uid)
        if identity is None:
            identity = IdentityTable(provider=provider, uid=uid)

        identity.set_auth_source(auth)
        return identity

    def get_by_provider_uid(self, provider: str, uid: str) -> IdentityTable | None:
        query = select(IdentityTable).where(IdentityTable.provider == provider, IdentityTable.uid == uid)
        return self.db_session.execute(query).scalar_one_or_none()

    def get_by_id(self, identity_id: str | None) -> IdentityTable | None:
        if not identity_id:
            return None
        return self.db_session.get(IdentityTable, identity_id)

    def is_persisted(self, identity: IdentityTable) -> bool:
        return inspect(identity).persistent

    def save(self, identity: IdentityTable) -> IdentityTable:
        """Persist an identity, firing the create and member-link extension points."""
        creating = not self.is_persisted(identity)
        if creating:
            self.hooks.invoke(ON_BEFORE_CREATE, identity)
        if self.member_link_changed(identity):
            self.hooks.invoke(ON_MEMBER_LINKED, identity)

        self.db_session.add(identity)
        try:
            self.db_session.flush()
        except IntegrityError as e:
            # (provider, uid) is unique; a concurrent callback got there first
            self.db_session.rollback()
            raise DuplicateIdentityError(identity.provider, identity.uid) from e

        if creating:
            log_event(
                "identity.created",
                component="identity_store",
                operation="save",
                identity_id=identity.id,
                provider=identity.provider,
            )
            self.hooks.invoke(ON_AFTER_CREATE, identity)
        return identity

    def member_link_changed(self, identity: IdentityTable) -> bool:
        state = inspect(identity)
        if state.transient or state.pending:
            return identity.member_id is not None
        return state.attrs.member_id.history.has_changes()
