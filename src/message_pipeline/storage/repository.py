"""Transactional message store backed by SQLModel + SQLite."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from pathlib import Path

from sqlalchemy import func
from sqlalchemy import update as sa_update
from sqlmodel import Session, col, delete, select

from message_pipeline.models import MessageState
from message_pipeline.storage.alembic_runner import upgrade_head
from message_pipeline.storage.common import build_sqlite_engine, utc_now
from message_pipeline.storage.sqlmodel_models import DEFAULT_BODY, Message, MessageProperty

logger = logging.getLogger(__name__)


class MessageStore:
    """Store facade; every public call checks out one pooled connection and one transaction."""

    def __init__(
        self,
        db_path: Path,
        *,
        busy_timeout_ms: int = 30_000,
        pool_size: int = 10,
        max_overflow: int = 20,
    ) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(
            db_path=db_path,
            busy_timeout_ms=busy_timeout_ms,
            pool_size=pool_size,
            max_overflow=max_overflow,
        )

    def close(self) -> None:
        """Release pooled connections."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        upgrade_head(self.db_path)

    def insert_message(
        self,
        *,
        number: int,
        producer_id: int | None = None,
        properties: Sequence[tuple[str, str]] = (),
        body: bytes = DEFAULT_BODY,
    ) -> int:
        """Insert one pending message with its properties in a single transaction."""

        now = utc_now()
        with Session(self.engine) as session:
            row = Message(
                header=f"header {number}",
                body=body,
                state=MessageState.PENDING.value,
                producer_id=producer_id,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            if row.id is None:
                raise RuntimeError("Message insert did not assign an id.")
            message_id = row.id
            for key, value in properties:
                session.add(MessageProperty(message_id=message_id, key=key, value=value))
            session.commit()
            return message_id

    def list_message_ids(self, state: MessageState, limit: int) -> list[int]:
        """Return up to ``limit`` ids of messages currently in ``state``."""

        if limit <= 0:
            raise ValueError("limit must be > 0")
        with Session(self.engine) as session:
            rows = session.exec(
                select(Message.id).where(Message.state == state.value).limit(limit),
            ).all()
            return [int(message_id) for message_id in rows if message_id is not None]

    def process_message(self, message_id: int, *, dwell_seconds: float) -> bool:
        """Move a message pending -> active -> done inside one transaction.

        The dwell runs before the write transaction opens, so concurrent
        processors only queue on SQLite's single writer for the two guarded
        updates. Returns ``False`` without changing anything when the
        message is no longer pending.
        """

        if self.message_state(message_id) is not MessageState.PENDING:
            logger.debug("Message %s is not pending, skipping", message_id)
            return False

        if dwell_seconds > 0:
            time.sleep(dwell_seconds)

        with Session(self.engine) as session:
            if not self._transition(
                session,
                message_id=message_id,
                state_from=MessageState.PENDING,
                state_to=MessageState.ACTIVE,
            ):
                session.rollback()
                return False

            if not self._transition(
                session,
                message_id=message_id,
                state_from=MessageState.ACTIVE,
                state_to=MessageState.DONE,
            ):
                session.rollback()
                raise RuntimeError(f"Message {message_id} left active state mid-transaction.")
            session.commit()
            return True

    def delete_message(self, message_id: int) -> bool:
        """Delete a done message and its properties in one transaction.

        Returns ``False`` (rolled back) when the message is gone or not done.
        """

        with Session(self.engine) as session:
            session.exec(
                delete(MessageProperty).where(col(MessageProperty.message_id) == message_id),
            )
            result = session.exec(
                delete(Message).where(
                    col(Message.id) == message_id,
                    col(Message.state) == MessageState.DONE.value,
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def count_messages(self, states: Iterable[MessageState] | None = None) -> int:
        """Count messages still in the store, optionally restricted to some states."""

        statement = select(func.count()).select_from(Message)
        if states is not None:
            statement = statement.where(
                col(Message.state).in_([state.value for state in states]),
            )
        with Session(self.engine) as session:
            count = session.exec(statement).one()
            return int(count)

    def count_by_state(self) -> dict[MessageState, int]:
        counts = {state: 0 for state in MessageState}
        with Session(self.engine) as session:
            rows = session.exec(
                select(Message.state, func.count()).group_by(Message.state),
            ).all()
        for state, count in rows:
            counts[MessageState(state)] = int(count)
        return counts

    def count_properties(self) -> int:
        with Session(self.engine) as session:
            count = session.exec(select(func.count()).select_from(MessageProperty)).one()
            return int(count)

    def message_state(self, message_id: int) -> MessageState | None:
        """Current state of one message, or ``None`` once it is deleted."""

        with Session(self.engine) as session:
            state = session.exec(
                select(Message.state).where(Message.id == message_id),
            ).one_or_none()
        return MessageState(state) if state is not None else None

    @staticmethod
    def _transition(
        session: Session,
        *,
        message_id: int,
        state_from: MessageState,
        state_to: MessageState,
    ) -> bool:
        result = session.exec(
            sa_update(Message)
            .where(
                col(Message.id) == message_id,
                col(Message.state) == state_from.value,
            )
            .values(
                state=state_to.value,
                version=Message.version + 1,
                updated_at=utc_now(),
            ),
        )
        if result.rowcount != 1:
            logger.debug(
                "Message %s not in %s state, skipping transition to %s",
                message_id,
                state_from.value,
                state_to.value,
            )
            return False
        return True
