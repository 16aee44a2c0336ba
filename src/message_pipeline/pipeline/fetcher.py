"""Batch fetching of message ids by state."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from message_pipeline.models import MessageState
from message_pipeline.storage.repository import MessageStore

logger = logging.getLogger(__name__)


class BatchFetcher:
    """Snapshot up to ``limit`` message ids in a given state."""

    def __init__(self, store: MessageStore) -> None:
        self.store = store

    def fetch(self, state: MessageState, limit: int) -> list[int]:
        """Return ids in store order; store failures yield an empty batch."""

        try:
            return self.store.list_message_ids(state, limit)
        except SQLAlchemyError:
            logger.exception("Fetching %s messages failed", state.value)
            return []
