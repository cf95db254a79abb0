from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any

from social_login.core.database_models import MemberTable
from social_login.core.logging import log_event

LOGGED_IN_MEMBER_KEY = "loggedInAs"
REMEMBER_ME_KEY = "rememberMe"
LOGGED_IN_AT_KEY = "loggedInAt"


class SessionLogin:
    """Establishes an authenticated browser session for a resolved member."""

    def can_log_in(self, member: MemberTable) -> bool:
        return bool(member.id) and bool(member.is_active)

    def log_in(self, member: MemberTable, remember_me: bool, session: MutableMapping[str, Any]) -> None:
        # Login regenerates the session, so nothing from the anonymous session survives
        session.clear()

        session[LOGGED_IN_MEMBER_KEY] = member.id
        session[REMEMBER_ME_KEY] = remember_me
        session[LOGGED_IN_AT_KEY] = datetime.now(UTC).isoformat()

        log_event(
            "session.logged_in",
            component="session_login",
            operation="log_in",
            member_id=member.id,
            remember_me=remember_me,
        )

    def logged_in_member_id(self, session: MutableMapping[str, Any]) -> str | None:
        return session.get(LOGGED_IN_MEMBER_KEY)
