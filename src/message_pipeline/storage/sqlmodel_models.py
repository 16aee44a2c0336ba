"""SQLModel ORM tables for message storage."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, LargeBinary
from sqlmodel import Field, SQLModel

DEFAULT_BODY = b"<body>Text</body>"


class Message(SQLModel, table=True):
    __tablename__ = "messages"  # type: ignore[bad-override]
    __table_args__ = (
        CheckConstraint(
            "state IN ('pending', 'active', 'done')",
            name="ck_messages_state",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    version: int = 0
    header: str
    body: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    state: str = Field(index=True)
    producer_id: int | None = None
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class MessageProperty(SQLModel, table=True):
    __tablename__ = "message_properties"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    message_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("messages.id"),
            nullable=False,
            index=True,
        ),
    )
    key: str | None = None
    value: str | None = None
