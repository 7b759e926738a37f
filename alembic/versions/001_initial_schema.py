"""Initial schema: users, usage ledgers, chat sessions, artifacts, patent cache.

Idempotent: app startup runs Base.metadata.create_all before migrations, so
each table is only created when it does not exist yet.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _existing_tables() -> set:
    return set(sa.inspect(op.get_bind()).get_table_names())


def upgrade() -> None:
    existing = _existing_tables()

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("full_name", sa.String(), nullable=True),
            sa.Column("avatar_url", sa.String(), nullable=True),
            sa.Column("subscription_tier", sa.String(), nullable=False, server_default="free"),
            sa.Column("valyu_sub", sa.String(), nullable=True),
            sa.Column("valyu_user_type", sa.String(), nullable=True),
            sa.Column("valyu_organisation_id", sa.String(), nullable=True),
            sa.Column("valyu_organisation_name", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        )
        op.create_index("ix_users_id", "users", ["id"])
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        op.create_index("ix_users_valyu_sub", "users", ["valyu_sub"])

    if "usage_ledgers" not in existing:
        op.create_table(
            "usage_ledgers",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("identity_type", sa.String(16), nullable=False),
            sa.Column("identity_id", sa.String(255), nullable=False),
            sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("window_started_at", sa.DateTime(), nullable=False),
            sa.Column("reset_at", sa.DateTime(), nullable=False),
            sa.Column("last_request_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("identity_type", "identity_id", name="uq_usage_ledgers_identity"),
        )
        op.create_index("ix_usage_ledgers_id", "usage_ledgers", ["id"])
        op.create_index("ix_usage_ledgers_reset_at", "usage_ledgers", ["reset_at"])

    if "chat_sessions" not in existing:
        op.create_table(
            "chat_sessions",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(), nullable=False, server_default="New Chat"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.Column("last_message_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_chat_sessions_id", "chat_sessions", ["id"])
        op.create_index("ix_chat_sessions_user_id", "chat_sessions", ["user_id"])
        op.create_index("ix_chat_sessions_last_message_at", "chat_sessions", ["last_message_at"])

    if "chat_messages" not in existing:
        op.create_table(
            "chat_messages",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column(
                "session_id",
                sa.String(36),
                sa.ForeignKey("chat_sessions.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("role", sa.String(16), nullable=False),
            sa.Column("content", sa.JSON(), nullable=False),
            sa.Column("processing_time_ms", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_chat_messages_session_id", "chat_messages", ["session_id"])

    for table in ("charts", "csvs"):
        if table in existing:
            continue
        columns = [
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), nullable=True),
            sa.Column("anonymous_id", sa.String(255), nullable=True),
            sa.Column("session_id", sa.String(36), nullable=True),
        ]
        if table == "charts":
            columns.append(sa.Column("chart_data", sa.JSON(), nullable=False))
        else:
            columns.extend([
                sa.Column("title", sa.String(), nullable=False),
                sa.Column("description", sa.Text(), nullable=True),
                sa.Column("headers", sa.JSON(), nullable=False),
                sa.Column("rows", sa.JSON(), nullable=False),
            ])
        columns.extend([
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        ])
        op.create_table(table, *columns)
        op.create_index(f"ix_{table}_id", table, ["id"])
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])

    if "patent_cache" not in existing:
        op.create_table(
            "patent_cache",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("session_id", sa.String(36), nullable=False),
            sa.Column("patent_number", sa.String(64), nullable=False),
            sa.Column("patent_index", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(), nullable=True),
            sa.Column("url", sa.String(), nullable=True),
            sa.Column("abstract", sa.Text(), nullable=True),
            sa.Column("full_content", sa.Text(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("cached_at", sa.DateTime(), nullable=False),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("session_id", "patent_number", name="uq_patent_cache_session_patent"),
        )
        op.create_index("ix_patent_cache_id", "patent_cache", ["id"])
        op.create_index("ix_patent_cache_session_id", "patent_cache", ["session_id"])
        op.create_index("ix_patent_cache_expires_at", "patent_cache", ["expires_at"])


def downgrade() -> None:
    for table in ("patent_cache", "csvs", "charts", "chat_messages", "chat_sessions", "usage_ledgers", "users"):
        op.drop_table(table)
