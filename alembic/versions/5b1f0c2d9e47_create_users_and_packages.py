"""create users and packages

Revision ID: 5b1f0c2d9e47
Revises:
Create Date: 2026-10-18 09:12:04.118522

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5b1f0c2d9e47"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    now = sa.text("now()")
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=now, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=now, nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("public_email", sa.String(length=255), nullable=False),
        sa.Column("private_email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "is_public_email_verified", sa.Boolean(), server_default=sa.false(), nullable=False
        ),
        sa.Column(
            "is_private_email_verified", sa.Boolean(), server_default=sa.false(), nullable=False
        ),
        *_timestamps(),
    )
    op.create_index("ix_users_private_email", "users", ["private_email"], unique=True)

    op.create_table(
        "packages",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("homepage", sa.String(length=2048), nullable=False),
        sa.Column("repository_url", sa.String(length=2048), nullable=False),
        sa.Column("keywords", postgresql.JSONB(), nullable=False),
        sa.Column(
            "owner_user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("object_store_bucket", sa.String(length=255), nullable=False),
        sa.Column("object_store_key", sa.String(length=1024), nullable=False),
        *_timestamps(),
    )
    # The unique name index is what makes concurrent publishes of one name race safely
    op.create_index("ix_packages_name", "packages", ["name"], unique=True)
    op.create_index("ix_packages_owner_user_id", "packages", ["owner_user_id"])


def downgrade() -> None:
    op.drop_index("ix_packages_owner_user_id", table_name="packages")
    op.drop_index("ix_packages_name", table_name="packages")
    op.drop_table("packages")
    op.drop_index("ix_users_private_email", table_name="users")
    op.drop_table("users")
