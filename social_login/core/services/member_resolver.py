from typing import Any

from sqlalchemy import inspect, select
from sqlalchemy.orm import Session as DBSession

from social_login.core.database_models import IdentityTable, MemberTable
from social_login.core.logging import log_event
from social_login.core.models import MemberResolutionOptions
from social_login.core.services.field_mapper import FieldMapper


class MemberResolver:
    """Finds or builds the member for an identity. Never writes to the database."""

    def __init__(self, db_session: DBSession, field_mapper: FieldMapper | None = None):
        self.db_session = db_session
        self.field_mapper = field_mapper or FieldMapper()

    def find_or_create_member(
        self, identity: IdentityTable, options: MemberResolutionOptions | None = None
    ) -> MemberTable:
        options = options or MemberResolutionOptions()

        # Repeat callbacks for a linked identity leave the member untouched
        if inspect(identity).persistent and identity.member_id:
            member = self.db_session.get(MemberTable, identity.member_id)
            if member is not None:
                return member

        record = self.member_record_from_auth(identity)

        member = None
        if record.get("email"):
            member = self.get_member_by_email(record["email"])
        if member is None:
            member = MemberTable()

        member_exists = inspect(member).persistent
        if options.link_on_match and member_exists:
            identity.member_id = member.id

        if not member_exists:
            member.update(record)
        else:
            member.update(self._fields_to_overwrite(record, options))

        log_event(
            "member.resolved",
            component="member_resolver",
            operation="find_or_create_member",
            provider=identity.provider,
            existing_member=member_exists,
            linked=identity.member_id is not None,
        )
        return member

    def member_record_from_auth(self, identity: IdentityTable) -> dict[str, Any]:
        """Projected member fields for the identity's auth source, cached on the identity."""
        if identity._parsed_record is None:
            identity._parsed_record = self.field_mapper.project(identity.provider, identity.auth_source)
        return identity._parsed_record

    def get_member_by_email(self, email: str) -> MemberTable | None:
        query = select(MemberTable).where(MemberTable.email == email)
        return self.db_session.execute(query).scalars().first()

    def _fields_to_overwrite(self, record: dict[str, Any], options: MemberResolutionOptions) -> dict[str, Any]:
        overwrite = options.overwrite_existing_fields
        if overwrite is True:
            fields = dict(record)
        elif isinstance(overwrite, list):
            allowed = set(overwrite)
            fields = {key: value for key, value in record.items() if key in allowed}
        else:
            fields = {}

        if options.overwrite_email is not True:
            fields.pop("email", None)
        return fields
