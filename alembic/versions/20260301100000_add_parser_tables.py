"""Parser settings/status singletons, parser logs, and run history.

Revision ID: 20260301100000
Revises: 20260301000000
Create Date: 2026-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20260301100000"
down_revision: Union[str, None] = "20260301000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "parser_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kinopoisk_api_key", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("omdb_api_key", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("update_interval", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("auto_update", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "content_types",
            postgresql.JSON(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[\"movies\", \"series\"]'::json"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "parser_status",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="inactive"),
        sa.Column("last_run", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "errors",
            postgresql.JSON(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::json"),
        ),
        sa.Column("run_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "parser_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_parser_logs_timestamp"), "parser_logs", ["timestamp"], unique=False)
    op.create_table(
        "parser_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="running"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("items_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("source", sa.String(length=64), nullable=False, server_default="kinopoisk"),
        sa.Column("details", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "errors",
            postgresql.JSON(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::json"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_parser_history_start_time"), "parser_history", ["start_time"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_parser_history_start_time"), table_name="parser_history")
    op.drop_table("parser_history")
    op.drop_index(op.f("ix_parser_logs_timestamp"), table_name="parser_logs")
    op.drop_table("parser_logs")
    op.drop_table("parser_status")
    op.drop_table("parser_settings")
