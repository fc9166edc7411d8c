"""Add embedded password-reset challenge columns to users."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0002_password_reset_challenge"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Add nullable OTP hash/expiry columns and a zeroed attempt counter."""

    with op.batch_alter_table("users") as batch_op:
        batch_op.add_column(sa.Column("reset_otp_hash", sa.Text(), nullable=True))
        batch_op.add_column(
            sa.Column("reset_otp_expires_at", sa.DateTime(timezone=True), nullable=True)
        )
        batch_op.add_column(
            sa.Column(
                "reset_otp_attempts",
                sa.Integer(),
                nullable=False,
                server_default=sa.text("0"),
            )
        )
        batch_op.create_check_constraint(
            "ck_users_reset_otp_attempts",
            "reset_otp_attempts >= 0",
        )


def downgrade() -> None:
    """Drop reset challenge columns and their constraint."""

    with op.batch_alter_table("users") as batch_op:
        batch_op.drop_constraint("ck_users_reset_otp_attempts", type_="check")
        batch_op.drop_column("reset_otp_attempts")
        batch_op.drop_column("reset_otp_expires_at")
        batch_op.drop_column("reset_otp_hash")
