from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _datetime_type() -> sa.types.TypeEngine:
    return sa.DateTime(timezone=True).with_variant(mysql.DATETIME(fsp=3), "mysql")


def _id_column() -> sa.Column:
    return sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True)


def upgrade() -> None:
    op.create_table(
        "logvault_logs",
        _id_column(),
        sa.Column("hostname", sa.String(255), nullable=True),
        sa.Column("pid", sa.Integer(), nullable=True),
        sa.Column("source", sa.String(255), nullable=True),
        sa.Column("timestamp", _datetime_type(), nullable=False),
        sa.Column("level", sa.String(255), nullable=False, server_default="info"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("meta", sa.Text(), nullable=True),
        sa.Column("external_id", sa.BigInteger(), nullable=True),
    )
    op.create_index("ix_logvault_logs_source_level_id", "logvault_logs", ["source", "level", "id"])
    op.create_index("ix_logvault_logs_source_level_timestamp", "logvault_logs", ["source", "level", "timestamp"])
    op.create_index("ix_logvault_logs_hostname_pid_id", "logvault_logs", ["hostname", "pid", "id"])
    op.create_index("ix_logvault_logs_external_id", "logvault_logs", ["external_id"])
    op.create_index("ix_logvault_logs_timestamp", "logvault_logs", ["timestamp"])

    op.create_table(
        "logvault_users",
        _id_column(),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(255), nullable=False),
    )

    op.create_table(
        "logvault_config",
        _id_column(),
        sa.Column("key", sa.String(255), nullable=False, unique=True),
        sa.Column("value", sa.Text(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("logvault_config")
    op.drop_table("logvault_users")
    op.drop_index("ix_logvault_logs_timestamp", table_name="logvault_logs")
    op.drop_index("ix_logvault_logs_external_id", table_name="logvault_logs")
    op.drop_index("ix_logvault_logs_hostname_pid_id", table_name="logvault_logs")
    op.drop_index("ix_logvault_logs_source_level_timestamp", table_name="logvault_logs")
    op.drop_index("ix_logvault_logs_source_level_id", table_name="logvault_logs")
    op.drop_table("logvault_logs")
