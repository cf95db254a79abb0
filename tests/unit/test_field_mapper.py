"""Unit tests for provider field mapping."""

import pytest

from social_login.core.services.field_mapper import (
    DEFAULT_MEMBER_MAPPER,
    DottedPath,
    FieldMapper,
    Transform,
    get_first_name,
    get_last_name,
    parse_source_path,
)


class TestParseSourcePath:
    """Test dotted path lookups into nested auth data."""

    def test_nested_value(self):
        assert parse_source_path("info.email", {"info": {"email": "a@example.com"}}) == "a@example.com"

    def test_missing_segment_returns_none(self):
        assert parse_source_path("info.email", {"info": {}}) is None
        assert parse_source_path("raw.locale", {"info": {}}) is None

    def test_non_mapping_segment_returns_none(self):
        assert parse_source_path("info.email.domain", {"info": {"email": "a@example.com"}}) is None

    def test_top_level_value(self):
        assert parse_source_path("uid", {"uid": "123"}) == "123"


class TestNameHelpers:
    """Test first and last name derivation."""

    def test_explicit_names_win(self):
        source = {"info": {"name": "Ignored Name", "first_name": "Jane", "last_name": "Doe"}}

        assert get_first_name(source) == "Jane"
        assert get_last_name(source) == "Doe"

    def test_split_full_name(self):
        source = {"info": {"name": "Mary Jane Watson"}}

        assert get_first_name(source) == "Mary"
        assert get_last_name(source) == "Jane Watson"

    def test_single_word_name(self):
        source = {"info": {"name": "Cher"}}

        assert get_first_name(source) == "Cher"
        assert get_last_name(source) is None

    def test_no_name(self):
        assert get_first_name({"info": {}}) is None
        assert get_last_name({}) is None


class TestFieldMapper:
    """Test projection of auth sections onto member fields."""

    def test_google_projection(self, auth_payload):
        record = FieldMapper().project("google", auth_payload(provider="google", image="https://img/jane.png"))

        assert record == {
            "email": "jane@example.com",
            "first_name": "Jane",
            "surname": "Doe",
            "locale": "en_NZ",
            "avatar_url": "https://img/jane.png",
        }

    def test_github_projection_splits_name(self):
        auth = {"provider": "github", "uid": "9", "info": {"name": "Linus Benedict Torvalds", "email": "l@example.com"}}

        record = FieldMapper().project("github", auth)

        assert record["first_name"] == "Linus"
        assert record["surname"] == "Benedict Torvalds"
        assert record["email"] == "l@example.com"
        assert record["avatar_url"] is None

    def test_missing_email_is_present_as_none(self, auth_payload):
        record = FieldMapper().project("google", auth_payload(email=None))

        assert "email" in record
        assert record["email"] is None

    def test_unknown_provider_projects_nothing(self, auth_payload):
        assert FieldMapper().project("myspace", auth_payload(provider="myspace")) == {}

    def test_custom_mapping(self):
        mapper = FieldMapper(
            {"acme": {"email": DottedPath("info.mail"), "surname": Transform(lambda source: source["uid"].upper())}}
        )

        record = mapper.project("acme", {"uid": "abc", "info": {"mail": "x@acme.test"}})

        assert record == {"email": "x@acme.test", "surname": "ABC"}

    def test_unsupported_rule(self):
        mapper = FieldMapper({"acme": {"email": "info.email"}})

        with pytest.raises(TypeError, match="Unsupported mapping rule"):
            mapper.project("acme", {"info": {"email": "x@acme.test"}})

    def test_default_mapper_used_when_none_given(self):
        assert FieldMapper().mapping_for("google") is DEFAULT_MEMBER_MAPPER["google"]
