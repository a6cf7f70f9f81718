"""Add login_attempts table.

Revision ID: 001
"""

import sqlalchemy as sa

from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "login_attempts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("identity", sa.String(255), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("failed_attempts", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("last_attempt_at", sa.DateTime(), nullable=False),
        sa.Column("lockout_until", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_login_attempts_identity", "login_attempts", ["identity"], unique=True)
    op.create_index("ix_login_attempts_last_attempt_at", "login_attempts", ["last_attempt_at"])
    op.create_index("ix_login_attempts_lockout_until", "login_attempts", ["lockout_until"])


def downgrade() -> None:
    op.drop_index("ix_login_attempts_lockout_until")
    op.drop_index("ix_login_attempts_last_attempt_at")
    op.drop_index("ix_login_attempts_identity")
    op.drop_table("login_attempts")
