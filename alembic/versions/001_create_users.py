"""Create users table with step-up credential fields.

Revision ID: 001
Revises:
Create Date: 2026-10-19

The step-up credential lives on the user row:
- step_up_secret_encrypted: AES-GCM encrypted TOTP secret
- step_up_requested_at: When the secret was issued
- step_up_verified: Whether a code was verified for the current secret
- step_up_verified_at: When the code was verified
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create users table."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("password_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("step_up_secret_encrypted", sa.LargeBinary(), nullable=True),
        sa.Column("step_up_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("step_up_verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("step_up_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)


def downgrade() -> None:
    """Drop users table."""
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
