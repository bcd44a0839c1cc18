"""add relay tables

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a1c3e5f7b9d2"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
    ]


def upgrade() -> None:
    """Upgrade schema: queue, sessions, conversations, messages and tenant config."""
    op.create_table(
        "queued_messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("sender_id", sa.String(length=255), nullable=False),
        sa.Column("recipient_id", sa.String(length=255), nullable=False),
        sa.Column("message", postgresql.JSONB(), nullable=False),
        sa.Column("event_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("external_message_id", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            sa.String(length=16),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column(
            "enqueued_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "tenant_id",
            "channel",
            "external_message_id",
            name="uq_queued_messages_tenant_channel_external_id",
        ),
    )
    op.create_index(
        "ix_queued_messages_tenant_id", "queued_messages", ["tenant_id"], unique=False
    )
    op.create_index(
        "ix_queued_messages_status_enqueued_at",
        "queued_messages",
        ["status", "enqueued_at"],
        unique=False,
    )

    op.create_table(
        "sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("contact_id", sa.String(length=255), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column(
            "context",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.Column("last_extended_at", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_sessions_tenant_contact_channel_expires",
        "sessions",
        ["tenant_id", "contact_id", "channel", "expires_at"],
        unique=False,
    )

    op.create_table(
        "conversations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("external_id", sa.String(length=255), nullable=False),
        sa.Column("participant_id", sa.String(length=255), nullable=True),
        sa.Column("participant_name", sa.String(length=255), nullable=True),
        sa.Column("last_message_at", sa.DateTime(), nullable=True),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], ondelete="SET NULL"),
        sa.UniqueConstraint(
            "tenant_id",
            "channel",
            "external_id",
            name="uq_conversations_tenant_channel_external_id",
        ),
    )
    op.create_index(
        "ix_conversations_tenant_id", "conversations", ["tenant_id"], unique=False
    )

    op.create_table(
        "messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("sender_type", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("external_id", sa.String(length=255), nullable=True),
        sa.Column(
            "sent_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["conversation_id"], ["conversations.id"], ondelete="CASCADE"
        ),
    )
    op.create_index(
        "ix_messages_conversation_id_sent_at",
        "messages",
        ["conversation_id", "sent_at"],
        unique=False,
    )

    op.create_table(
        "channel_connections",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("account_id", sa.String(length=255), nullable=False),
        sa.Column("account_name", sa.String(length=255), nullable=True),
        sa.Column("encrypted_access_token", sa.LargeBinary(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "tenant_id",
            "channel",
            "account_id",
            name="uq_channel_connections_tenant_channel_account",
        ),
    )
    op.create_index(
        "ix_channel_connections_tenant_id",
        "channel_connections",
        ["tenant_id"],
        unique=False,
    )

    op.create_table(
        "webhook_configs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("verification_token", sa.String(length=255), nullable=False),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_webhook_configs_tenant_id", "webhook_configs", ["tenant_id"], unique=False
    )
    op.create_index(
        "ix_webhook_configs_verification_token",
        "webhook_configs",
        ["verification_token"],
        unique=False,
    )

    op.create_table(
        "agent_configs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("encrypted_api_key", sa.LargeBinary(), nullable=True),
        sa.Column("version_id", sa.String(length=128), nullable=True),
        sa.Column("runtime_url", sa.String(length=512), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_agent_configs_tenant_id", "agent_configs", ["tenant_id"], unique=True
    )

    op.create_table(
        "dead_letters",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("message_text", sa.Text(), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=False),
        sa.Column(
            "context",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_dead_letters_tenant_id", "dead_letters", ["tenant_id"], unique=False
    )


def downgrade() -> None:
    """Downgrade schema: drop relay tables."""
    op.drop_index("ix_dead_letters_tenant_id", table_name="dead_letters")
    op.drop_table("dead_letters")
    op.drop_index("ix_agent_configs_tenant_id", table_name="agent_configs")
    op.drop_table("agent_configs")
    op.drop_index("ix_webhook_configs_verification_token", table_name="webhook_configs")
    op.drop_index("ix_webhook_configs_tenant_id", table_name="webhook_configs")
    op.drop_table("webhook_configs")
    op.drop_index("ix_channel_connections_tenant_id", table_name="channel_connections")
    op.drop_table("channel_connections")
    op.drop_index("ix_messages_conversation_id_sent_at", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_conversations_tenant_id", table_name="conversations")
    op.drop_table("conversations")
    op.drop_index("ix_sessions_tenant_contact_channel_expires", table_name="sessions")
    op.drop_table("sessions")
    op.drop_index("ix_queued_messages_status_enqueued_at", table_name="queued_messages")
    op.drop_index("ix_queued_messages_tenant_id", table_name="queued_messages")
    op.drop_table("queued_messages")
