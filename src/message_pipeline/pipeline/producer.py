"""Producer role: inserts pending messages, then signals ready-to-watch."""

from __future__ import annotations

import logging
import threading
import time

from sqlalchemy.exc import SQLAlchemyError

from message_pipeline.models import ProducerSummary
from message_pipeline.storage.repository import MessageStore

logger = logging.getLogger(__name__)

BATCH_NUMBER_STRIDE = 1000


class Producer:
    """Insert messages with their properties, one transaction per message."""

    def __init__(
        self,
        store: MessageStore,
        *,
        producer_id: int = 1,
        properties_per_message: int = 3,
    ) -> None:
        self.store = store
        self.producer_id = producer_id
        self.properties_per_message = properties_per_message

    def produce(
        self,
        count: int,
        batches: int,
        delay_seconds: float,
        ready: threading.Event | None = None,
    ) -> ProducerSummary:
        """Insert ``count`` messages per batch ``batches`` times.

        Numbering restarts per batch at ``batch * max(1000, count)``. A
        failed insert is logged and counted; ``ready`` is set once all
        batches are through, whatever their outcome.
        """

        summary = ProducerSummary()
        stride = max(BATCH_NUMBER_STRIDE, count)
        try:
            for batch in range(batches):
                for offset in range(count):
                    self._insert(batch * stride + offset, summary)
                    if delay_seconds > 0:
                        time.sleep(delay_seconds)
            logger.info(
                "Producer %s finished: inserted=%d failed=%d",
                self.producer_id,
                summary.inserted,
                summary.failed,
            )
        finally:
            if ready is not None:
                ready.set()
        return summary

    def _insert(self, number: int, summary: ProducerSummary) -> None:
        properties = [(f"key #{i}", f"value #{i}") for i in range(self.properties_per_message)]
        try:
            message_id = self.store.insert_message(
                number=number,
                producer_id=self.producer_id,
                properties=properties,
            )
        except SQLAlchemyError:
            summary.failed += 1
            logger.exception("Inserting message #%d failed", number)
            return
        summary.inserted += 1
        logger.debug("Inserted message #%d [id=%d]", number, message_id)
