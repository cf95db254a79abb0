from datetime import UTC, datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    DateTime,
    Engine,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# Single unified Base for all models using SQLAlchemy 2.0 style
class Base(DeclarativeBase):
    """Base class for all database models with proper typing support."""

    pass


# Function to enable foreign key enforcement - to be called by engines
def enable_sqlite_foreign_keys(engine: Engine):
    """Enable foreign key enforcement for SQLite connections on an engine."""

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
        """Enable foreign key enforcement for SQLite connections."""
        if "sqlite" in str(dbapi_connection):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()


class MemberTable(Base):
    """Site member account. Only the profile subset is written by social login."""

    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    email: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    surname: Mapped[str | None] = mapped_column(String, nullable=True)
    locale: Mapped[str | None] = mapped_column(String, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    # Relationships
    identities: Mapped[list["IdentityTable"]] = relationship(back_populates="member")

    # Fields a provider projection or the completion form may write
    PROFILE_FIELDS = ("email", "first_name", "surname", "locale", "avatar_url")

    def update(self, record: dict[str, Any]) -> None:
        """Apply profile fields from a mapping, ignoring unknown keys."""
        for field, value in record.items():
            if field not in self.PROFILE_FIELDS:
                continue
            # Email is unique; members without one store NULL, never ""
            if field == "email" and isinstance(value, str) and not value.strip():
                value = None
            setattr(self, field, value)

    def profile_data(self) -> dict[str, Any]:
        return {field: getattr(self, field) for field in self.PROFILE_FIELDS}


class IdentityTable(Base):
    """Binding between one provider account and at most one member."""

    __tablename__ = "opauth_identities"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    provider: Mapped[str] = mapped_column(String(45))
    uid: Mapped[str] = mapped_column(String(255))
    member_id: Mapped[str | None] = mapped_column(ForeignKey("members.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(UTC))

    # Relationships
    member: Mapped[Optional["MemberTable"]] = relationship(back_populates="identities")

    __table_args__ = (
        UniqueConstraint("provider", "uid", name="uq_opauth_identities_provider_uid"),
        Index("ix_opauth_identities_member_id", "member_id"),
    )

    # Transient per-callback state, never persisted
    _auth_source = None
    _parsed_record = None

    def set_auth_source(self, auth: dict[str, Any]) -> "IdentityTable":
        """Attach the provider auth section and drop any cached projection."""
        self._auth_source = auth
        self._parsed_record = None
        return self

    @property
    def auth_source(self) -> dict[str, Any]:
        return self._auth_source or {}


__all__ = [
    "Base",
    "MemberTable",
    "IdentityTable",
    "enable_sqlite_foreign_keys",
]
