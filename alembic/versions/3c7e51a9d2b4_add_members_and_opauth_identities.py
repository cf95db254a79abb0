"""add_members_and_opauth_identities

Revision ID: 3c7e51a9d2b4
Revises:
Create Date: 2026-10-19 10:12:44.218305

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c7e51a9d2b4"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create members and the provider identities linked to them."""
    op.create_table(
        "members",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("surname", sa.String(), nullable=True),
        sa.Column("locale", sa.String(), nullable=True),
        sa.Column("avatar_url", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "opauth_identities",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("provider", sa.String(length=45), nullable=False),
        sa.Column("uid", sa.String(length=255), nullable=False),
        sa.Column("member_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "uid", name="uq_opauth_identities_provider_uid"),
    )
    op.create_index("ix_opauth_identities_member_id", "opauth_identities", ["member_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_opauth_identities_member_id", table_name="opauth_identities")
    op.drop_table("opauth_identities")
    op.drop_table("members")
