from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql


revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def _datetime_type() -> sa.types.TypeEngine:
    return sa.DateTime(timezone=True).with_variant(mysql.DATETIME(fsp=3), "mysql")


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if inspector.has_table("logvault_notifications"):
        return

    op.create_table(
        "logvault_notifications",
        sa.Column(
            "id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True
        ),
        sa.Column("external_id", sa.BigInteger(), nullable=True),
        sa.Column("hostname", sa.String(255), nullable=True),
        sa.Column("hashed_message", sa.String(255), nullable=False),
        sa.Column("created_at", _datetime_type(), nullable=False),
        sa.Column("updated_at", _datetime_type(), nullable=False),
    )
    op.create_index(
        "ix_logvault_notifications_hostname_hash_created",
        "logvault_notifications",
        ["hostname", "hashed_message", "created_at"],
    )
    op.create_index("ix_logvault_notifications_created_at", "logvault_notifications", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_logvault_notifications_created_at", table_name="logvault_notifications")
    op.drop_index("ix_logvault_notifications_hostname_hash_created", table_name="logvault_notifications")
    op.drop_table("logvault_notifications")
