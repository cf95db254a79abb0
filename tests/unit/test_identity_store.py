"""Unit tests for IdentityStore."""

from unittest.mock import Mock

import pytest

from social_login.core.exceptions import DuplicateIdentityError
from social_login.core.services.extension_hooks import ON_AFTER_CREATE, ON_BEFORE_CREATE, ON_MEMBER_LINKED
from social_login.core.services.identity_store import IdentityStore


class TestIdentityStore:
    """Test identity lookup, persistence and extension hooks."""

    def test_resolve_new_identity_is_transient(self, db_session, hooks, auth_payload):
        store = IdentityStore(db_session, hooks)
        auth = auth_payload(uid="555")

        identity = store.resolve_identity(auth)

        assert identity.provider == "google"
        assert identity.uid == "555"
        assert identity.auth_source == auth
        assert store.is_persisted(identity) is False

    def test_resolve_existing_identity(self, db_session, hooks, auth_payload):
        store = IdentityStore(db_session, hooks)
        saved = store.save(store.resolve_identity(auth_payload(uid="555")))

        found = store.resolve_identity(auth_payload(uid="555"))

        assert found.id == saved.id
        assert store.is_persisted(found) is True

    def test_uid_match_is_exact_per_provider(self, db_session, hooks, auth_payload):
        store = IdentityStore(db_session, hooks)
        store.save(store.resolve_identity(auth_payload(provider="google", uid="555")))

        other = store.resolve_identity(auth_payload(provider="github", uid="555"))

        assert store.is_persisted(other) is False

    def test_resolve_replaces_auth_source_and_cached_record(self, db_session, hooks, auth_payload):
        store = IdentityStore(db_session, hooks)
        identity = store.save(store.resolve_identity(auth_payload(uid="555")))
        identity._parsed_record = {"email": "stale@example.com"}

        fresh_auth = auth_payload(uid="555", email="fresh@example.com")
        found = store.resolve_identity(fresh_auth)

        assert found.auth_source == fresh_auth
        assert found._parsed_record is None

    def test_save_new_identity_fires_create_hooks(self, db_session, hooks, auth_payload):
        before, after, linked = Mock(), Mock(), Mock()
        hooks.register(ON_BEFORE_CREATE, before)
        hooks.register(ON_AFTER_CREATE, after)
        hooks.register(ON_MEMBER_LINKED, linked)
        store = IdentityStore(db_session, hooks)

        identity = store.save(store.resolve_identity(auth_payload()))

        before.assert_called_once_with(identity)
        after.assert_called_once_with(identity)
        linked.assert_not_called()
        assert identity.id is not None

    def test_save_existing_identity_skips_create_hooks(self, db_session, hooks, auth_payload):
        store = IdentityStore(db_session, hooks)
        identity = store.save(store.resolve_identity(auth_payload()))
        before = Mock()
        hooks.register(ON_BEFORE_CREATE, before)

        store.save(identity)

        before.assert_not_called()

    def test_member_link_fires_linked_hook(self, db_session, hooks, auth_payload, make_member):
        member = make_member()
        linked = Mock()
        hooks.register(ON_MEMBER_LINKED, linked)
        store = IdentityStore(db_session, hooks)
        identity = store.save(store.resolve_identity(auth_payload()))

        identity.member_id = member.id
        assert store.member_link_changed(identity) is True
        store.save(identity)

        linked.assert_called_once_with(identity)
        assert store.member_link_changed(identity) is False

    def test_new_identity_with_member_counts_as_link_change(self, db_session, hooks, auth_payload, make_member):
        member = make_member()
        store = IdentityStore(db_session, hooks)
        identity = store.resolve_identity(auth_payload())
        identity.member_id = member.id

        assert store.member_link_changed(identity) is True

    def test_get_by_id(self, db_session, hooks, auth_payload):
        store = IdentityStore(db_session, hooks)
        identity = store.save(store.resolve_identity(auth_payload()))

        assert store.get_by_id(identity.id) is identity
        assert store.get_by_id("missing-id") is None
        assert store.get_by_id(None) is None

    def test_duplicate_identity_raises(self, db_manager, auth_payload):
        first_session = db_manager.SessionLocal()
        second_session = db_manager.SessionLocal()
        try:
            first = IdentityStore(first_session)
            second = IdentityStore(second_session)
            # Both callbacks resolve before either has written
            racing = second.resolve_identity(auth_payload(uid="777"))
            first.save(first.resolve_identity(auth_payload(uid="777")))
            first_session.commit()

            with pytest.raises(DuplicateIdentityError) as exc_info:
                second.save(racing)

            assert exc_info.value.provider == "google"
            assert exc_info.value.uid == "777"
        finally:
            first_session.close()
            second_session.close()
