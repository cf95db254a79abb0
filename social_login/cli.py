import json
import os
from datetime import UTC, datetime

import typer
from sqlalchemy import select

from social_login.core.database_models import IdentityTable, MemberTable
from social_login.core.logging import init_logging, log_event, set_run_id, set_trace_id
from social_login.core.services.callback_transport import encode_response
from social_login.core.services.signature import sign_response
from social_login.core.storage import DatabaseManager

DEFAULT_DATABASE_URL = "sqlite:///./social_login.db"

app = typer.Typer(help="Social Login - OAuth identity resolution and login service.")


def _init_logging_from_cli(
    log_level: str | None = None,
    log_file: str | None = None,
    log_format: str = "text",
    log_mask: bool = False,
) -> None:
    init_logging(level=log_level, fmt=log_format, file_path=log_file, mask=log_mask)
    # Fresh run id for each CLI invocation; also set as initial trace id
    _rid = datetime.now(UTC).strftime("%Y%m%d%H%M%S%f")[-12:]
    set_run_id(_rid)
    set_trace_id(_rid)
    log_event("cli.start", component="cli", operation="start", log_level=log_level or "INFO", log_format=log_format)


def _database_url(database_url: str | None) -> str:
    return database_url or os.getenv("SOCIAL_LOGIN_DATABASE_URL", DEFAULT_DATABASE_URL)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind the server to"),
    port: int = typer.Option(8080, help="Port to bind the server to"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
    log_level: str = typer.Option("info", help="Uvicorn log level"),
):
    """
    Runs the social login API with uvicorn.
    """
    from social_login.api_server import run

    run(host=host, port=port, reload=reload, log_level=log_level)


@app.command("init-db")
def init_db(
    database_url: str | None = typer.Option(None, help="SQLAlchemy database URL"),
    log_level: str | None = typer.Option(None, help="Log level (DEBUG, INFO, ...)"),
    log_format: str = typer.Option("text", help="Log format: json|text"),
):
    """
    Creates the members and opauth_identities tables if they do not exist.
    """
    _init_logging_from_cli(log_level, None, log_format)
    db_manager = DatabaseManager(_database_url(database_url))
    db_manager.dispose()
    typer.echo("Database initialised.")


@app.command()
def identities(
    provider: str | None = typer.Option(None, help="Only list identities for this provider"),
    database_url: str | None = typer.Option(None, help="SQLAlchemy database URL"),
    log_level: str | None = typer.Option(None, help="Log level (DEBUG, INFO, ...)"),
    log_format: str = typer.Option("text", help="Log format: json|text"),
):
    """
    Lists stored provider identities with the email of the linked member.
    """
    _init_logging_from_cli(log_level, None, log_format)
    db_manager = DatabaseManager(_database_url(database_url))
    try:
        with db_manager.session_scope() as db:
            query = (
                select(MemberTable.email, IdentityTable.provider, IdentityTable.uid)
                .select_from(IdentityTable)
                .outerjoin(MemberTable, IdentityTable.member_id == MemberTable.id)
                .order_by(IdentityTable.provider, IdentityTable.uid)
            )
            if provider:
                query = query.where(IdentityTable.provider == provider)
            rows = db.execute(query).all()

        if not rows:
            typer.echo("No identities found.")
            return

        typer.echo(f"{'Member email':<40} | {'Provider':<12} | UID")
        typer.echo("-" * 80)
        for email, identity_provider, uid in rows:
            typer.echo(f"{(email or '(unlinked)')[:40]:<40} | {identity_provider:<12} | {uid}")
    finally:
        db_manager.dispose()


@app.command()
def sign(
    auth_json: str = typer.Argument(..., help='Auth section as JSON, e.g. {"provider": "google", "uid": "1"}'),
    salt: str | None = typer.Option(None, help="Security salt (default: SOCIAL_LOGIN_SECURITY_SALT)"),
    iteration: int = typer.Option(300, min=1, help="Signature iteration count"),
    raw: bool = typer.Option(False, help="Print the signed JSON instead of the base64 transport value"),
):
    """
    Signs an auth section and prints the value for the get/post callback transports.
    """
    salt = salt or os.getenv("SOCIAL_LOGIN_SECURITY_SALT")
    if not salt:
        typer.echo("A security salt is required (--salt or SOCIAL_LOGIN_SECURITY_SALT).", err=True)
        raise typer.Exit(1)

    try:
        auth = json.loads(auth_json)
    except json.JSONDecodeError as e:
        typer.echo(f"Invalid auth JSON: {e}", err=True)
        raise typer.Exit(1) from e
    if not isinstance(auth, dict):
        typer.echo("Auth JSON must be an object.", err=True)
        raise typer.Exit(1)

    response = sign_response(auth, salt, iteration)
    typer.echo(json.dumps(response, indent=2) if raw else encode_response(response))


if __name__ == "__main__":
    app()
