"""Per-message worker tasks run by the fan-out runner."""

from __future__ import annotations

import logging
from typing import Protocol

from message_pipeline.storage.repository import MessageStore

logger = logging.getLogger(__name__)


class WorkerTask(Protocol):
    """One transactional operation on one message id; never raises."""

    def __call__(self, message_id: int) -> bool: ...


class ProcessEntryTask:
    """Move a pending message through active to done."""

    def __init__(self, store: MessageStore, *, dwell_seconds: float) -> None:
        self.store = store
        self.dwell_seconds = dwell_seconds

    def __call__(self, message_id: int) -> bool:
        try:
            processed = self.store.process_message(
                message_id,
                dwell_seconds=self.dwell_seconds,
            )
        except Exception:  # noqa: BLE001
            logger.exception("Processing message %s failed", message_id)
            return False
        if processed:
            logger.debug("Message %s was processed", message_id)
        return processed


class DeleteEntryTask:
    """Delete a done message together with its properties."""

    def __init__(self, store: MessageStore) -> None:
        self.store = store

    def __call__(self, message_id: int) -> bool:
        try:
            deleted = self.store.delete_message(message_id)
        except Exception:  # noqa: BLE001
            logger.exception("Deleting message %s failed", message_id)
            return False
        if deleted:
            logger.debug("Message %s was deleted", message_id)
        return deleted
