"""Messages with state lifecycle and their key/value properties."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("header", sa.String(), nullable=False),
        sa.Column("body", sa.LargeBinary(), nullable=False),
        sa.Column("state", sa.String(), nullable=False, server_default="pending"),
        sa.Column("producer_id", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "state IN ('pending', 'active', 'done')",
            name="ck_messages_state",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_messages_state", "messages", ["state"])

    op.create_table(
        "message_properties",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("message_id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(), nullable=True),
        sa.Column("value", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["message_id"], ["messages.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_message_properties_message_id",
        "message_properties",
        ["message_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_message_properties_message_id", table_name="message_properties")
    op.drop_table("message_properties")
    op.drop_index("ix_messages_state", table_name="messages")
    op.drop_table("messages")
