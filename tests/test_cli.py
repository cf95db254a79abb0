"""Tests for the social-login command line interface."""

import base64
import json

from typer.testing import CliRunner

from social_login.cli import app
from social_login.core.database_models import IdentityTable, MemberTable
from social_login.core.services.signature import SignatureVerifier, auth_digest
from social_login.core.storage import DatabaseManager

runner = CliRunner()
SALT = "cli-test-salt-with-at-least-32-characters"


class TestSignCommand:
    """Test producing signed transport payloads."""

    def test_sign_outputs_verifiable_payload(self):
        result = runner.invoke(app, ["sign", '{"provider": "google", "uid": "1"}', "--salt", SALT, "--iteration", "3"])

        assert result.exit_code == 0
        response = json.loads(base64.b64decode(result.stdout.strip()))
        assert response["auth"] == {"provider": "google", "uid": "1"}
        valid, _ = SignatureVerifier(SALT, iteration=3).verify(
            auth_digest(response["auth"]), response["timestamp"], response["signature"]
        )
        assert valid is True

    def test_sign_raw_json(self):
        result = runner.invoke(app, ["sign", '{"provider": "google", "uid": "1"}', "--salt", SALT, "--raw"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["auth"]["uid"] == "1"

    def test_sign_rejects_invalid_json(self):
        result = runner.invoke(app, ["sign", "{not json", "--salt", SALT])

        assert result.exit_code == 1

    def test_sign_requires_object(self):
        result = runner.invoke(app, ["sign", "[1, 2]", "--salt", SALT])

        assert result.exit_code == 1


class TestDatabaseCommands:
    """Test init-db and identities against a temporary database."""

    def test_init_db_and_list_identities(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'cli.db'}"

        assert runner.invoke(app, ["init-db", "--database-url", url]).exit_code == 0

        empty = runner.invoke(app, ["identities", "--database-url", url])
        assert empty.exit_code == 0
        assert "No identities found." in empty.stdout

        manager = DatabaseManager(url)
        with manager.session_scope() as db:
            member = MemberTable(email="jane@example.com")
            db.add(member)
            db.flush()
            db.add(IdentityTable(provider="google", uid="g-1", member_id=member.id))
            db.add(IdentityTable(provider="github", uid="gh-1"))
        manager.dispose()

        listing = runner.invoke(app, ["identities", "--database-url", url])
        assert listing.exit_code == 0
        assert "jane@example.com" in listing.stdout
        assert "g-1" in listing.stdout
        assert "(unlinked)" in listing.stdout

        filtered = runner.invoke(app, ["identities", "--database-url", url, "--provider", "github"])
        assert "gh-1" in filtered.stdout
        assert "jane@example.com" not in filtered.stdout
