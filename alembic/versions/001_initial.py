"""Initial schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("role", sa.String(32), nullable=False, server_default="user"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # --- whatsapp_groups ---
    op.create_table(
        "whatsapp_groups",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("whapi_group_id", sa.String(255), nullable=False, unique=True),
        sa.Column("group_name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_whatsapp_groups_whapi_group_id", "whatsapp_groups", ["whapi_group_id"])

    # --- raw_messages ---
    op.create_table(
        "raw_messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "group_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("whatsapp_groups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("whapi_msg_id", sa.String(255), nullable=False, unique=True),
        sa.Column("sender_phone", sa.String(64), nullable=True),
        sa.Column("sender_name", sa.String(255), nullable=True),
        sa.Column("message_body", sa.Text, nullable=True),
        sa.Column("message_type", sa.String(32), nullable=False, server_default="text"),
        sa.Column("media_url", sa.Text, nullable=True),
        sa.Column("media_mime_type", sa.String(128), nullable=True),
        sa.Column("media_local_path", sa.Text, nullable=True),
        sa.Column("reply_to_msg_id", sa.String(255), nullable=True),
        sa.Column("is_forwarded", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("timestamp_wa", sa.DateTime(timezone=True), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("processed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("processing_error", sa.Text, nullable=True),
        sa.Column("embedding", postgresql.JSONB, nullable=True),
    )
    op.create_index("ix_raw_messages_group_id", "raw_messages", ["group_id"])
    op.create_index("ix_raw_messages_reply_to_msg_id", "raw_messages", ["reply_to_msg_id"])
    op.create_index("ix_raw_messages_processed", "raw_messages", ["processed"])

    # --- lookup tables ---
    op.create_table(
        "categories",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        "manufacturers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("aliases", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        "units",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("abbreviation", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        "conditions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("abbreviation", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        "jargon_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("acronym", sa.String(100), nullable=False, unique=True),
        sa.Column("expansion", sa.String(500), nullable=False),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("context_example", sa.Text, nullable=True),
        sa.Column("source", sa.String(32), nullable=False, server_default="llm"),
        sa.Column("confidence", sa.Float, nullable=False, server_default="0.5"),
        sa.Column("usage_count", sa.Integer, nullable=False, server_default="1"),
        sa.Column("verified", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    # --- listings ---
    op.create_table(
        "listings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "raw_message_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("raw_messages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "group_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("whatsapp_groups.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("intent", sa.String(16), nullable=False),
        sa.Column("confidence_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("item_description", sa.Text, nullable=False),
        sa.Column("category_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("manufacturer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("manufacturers.id"), nullable=True),
        sa.Column("part_number", sa.String(255), nullable=True),
        sa.Column("model_name", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=True),
        sa.Column("unit_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("units.id"), nullable=True),
        sa.Column("price", sa.Numeric(14, 2), nullable=True),
        sa.Column("price_currency", sa.String(8), nullable=False, server_default="USD"),
        sa.Column("condition_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("conditions.id"), nullable=True),
        sa.Column("attributes", postgresql.JSONB, nullable=True),
        sa.Column("original_text", sa.Text, nullable=True),
        sa.Column("sender_name", sa.String(255), nullable=True),
        sa.Column("sender_phone", sa.String(64), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("needs_human_review", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("reviewed_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sold_message_id", sa.String(255), nullable=True),
        sa.Column("buyer_name", sa.String(255), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_listings_raw_message_id", "listings", ["raw_message_id"])
    op.create_index("ix_listings_group_id", "listings", ["group_id"])
    op.create_index("ix_listings_part_number", "listings", ["part_number"])
    op.create_index("ix_listings_status", "listings", ["status"])

    # --- review_queue ---
    op.create_table(
        "review_queue",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "listing_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("listings.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "raw_message_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("raw_messages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reason", sa.String(500), nullable=False),
        sa.Column("llm_explanation", sa.Text, nullable=True),
        sa.Column("suggested_values", postgresql.JSONB, nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("resolved_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution", postgresql.JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_review_queue_listing_id", "review_queue", ["listing_id"])
    op.create_index("ix_review_queue_status", "review_queue", ["status"])

    # --- notification_rules ---
    op.create_table(
        "notification_rules",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("nl_rule", sa.Text, nullable=False),
        sa.Column("parsed_intent", sa.String(16), nullable=True),
        sa.Column("parsed_keywords", postgresql.JSONB, nullable=True),
        sa.Column("parsed_category_ids", postgresql.JSONB, nullable=True),
        sa.Column("parsed_price_min", sa.Numeric(14, 2), nullable=True),
        sa.Column("parsed_price_max", sa.Numeric(14, 2), nullable=True),
        sa.Column("notify_channel", sa.String(32), nullable=False, server_default="email"),
        sa.Column("notify_email", sa.String(320), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("last_triggered", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_notification_rules_user_id", "notification_rules", ["user_id"])
    op.create_index("ix_notification_rules_is_active", "notification_rules", ["is_active"])

    # --- chat ---
    op.create_table(
        "chat_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False, server_default="New Chat"),
        *_timestamps(),
    )
    op.create_index("ix_chat_sessions_user_id", "chat_sessions", ["user_id"])

    op.create_table(
        "chat_messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("chat_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("model_used", sa.String(100), nullable=True),
        sa.Column("input_tokens", sa.Integer, nullable=False, server_default="0"),
        sa.Column("output_tokens", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cost_usd", sa.Numeric(12, 6), nullable=False, server_default="0"),
        sa.Column("tool_calls", postgresql.JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_chat_messages_session_id", "chat_messages", ["session_id"])

    # --- usage_ledger ---
    op.create_table(
        "usage_ledger",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("period_date", sa.Date, nullable=False),
        sa.Column("total_input_tokens", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("total_output_tokens", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("total_cost_usd", sa.Numeric(12, 6), nullable=False, server_default="0"),
        sa.Column("session_count", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_usage_ledger_user_id", "usage_ledger", ["user_id"])
    op.create_unique_constraint("uq_usage_user_period", "usage_ledger", ["user_id", "period_date"])

    # --- audit_log ---
    op.create_table(
        "audit_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.String(255), nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_log_user_id", "audit_log", ["user_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("usage_ledger")
    op.drop_table("chat_messages")
    op.drop_table("chat_sessions")
    op.drop_table("notification_rules")
    op.drop_table("review_queue")
    op.drop_table("listings")
    op.drop_table("jargon_entries")
    op.drop_table("conditions")
    op.drop_table("units")
    op.drop_table("manufacturers")
    op.drop_table("categories")
    op.drop_table("raw_messages")
    op.drop_table("whatsapp_groups")
    op.drop_table("users")
