"""PipelineOrchestrator: wires producer, consumer, cleaner and watcher roles."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TypeVar

from message_pipeline.config import Settings
from message_pipeline.models import (
    MessageState,
    PipelineRunReport,
    ProducerSummary,
    WatchOutcome,
)
from message_pipeline.pipeline.fanout import FanOutRunner
from message_pipeline.pipeline.fetcher import BatchFetcher
from message_pipeline.pipeline.producer import Producer
from message_pipeline.pipeline.scheduler import CycleScheduler
from message_pipeline.pipeline.tasks import DeleteEntryTask, ProcessEntryTask
from message_pipeline.pipeline.watcher import Watcher
from message_pipeline.storage.repository import MessageStore

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class PipelineOrchestrator:
    """Runs one producer/consumer/cleaner session until the watcher stops it.

    Startup: schema, then producer, consumer and cleaner concurrently. The
    watcher starts once the producer reports ready. When the watcher
    signals stop, both schedulers are asked to stop and given
    ``shutdown_grace_seconds`` to finish their in-flight cycle before the
    store's pool is released.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self.settings = settings
        self._on_progress = on_progress or (lambda _msg: None)

    def run(self) -> PipelineRunReport:
        """Execute a full run; setup failures propagate."""

        settings = self.settings
        settings.validate()
        store = MessageStore(
            settings.db_path,
            busy_timeout_ms=settings.store.busy_timeout_ms,
            pool_size=settings.store.pool_size,
            max_overflow=settings.store.max_overflow,
        )
        try:
            store.init_schema()
            return self._run_roles(store)
        finally:
            store.close()

    def _run_roles(self, store: MessageStore) -> PipelineRunReport:
        settings = self.settings
        started = time.monotonic()
        fetcher = BatchFetcher(store)
        consumer = CycleScheduler(
            runner=FanOutRunner(fetcher, limit=settings.pipeline.batch_limit, name="consumer"),
            state=MessageState.PENDING,
            task=ProcessEntryTask(store, dwell_seconds=settings.pipeline.dwell_seconds),
            interval_seconds=settings.pipeline.cycle_interval_seconds,
            name="consumer",
        )
        cleaner = CycleScheduler(
            runner=FanOutRunner(fetcher, limit=settings.pipeline.batch_limit, name="cleaner"),
            state=MessageState.DONE,
            task=DeleteEntryTask(store),
            interval_seconds=settings.pipeline.cycle_interval_seconds,
            name="cleaner",
        )
        producer = Producer(
            store,
            producer_id=settings.producer.producer_id,
            properties_per_message=settings.producer.properties_per_message,
        )
        watcher = Watcher(store, interval_seconds=settings.pipeline.watch_interval_seconds)

        ready = threading.Event()
        stop = threading.Event()
        produced: list[ProducerSummary] = []
        outcomes: list[WatchOutcome] = []

        _start_role(
            "producer",
            lambda: producer.produce(
                settings.producer.messages_per_batch,
                settings.producer.batches,
                settings.producer.delay_seconds,
                ready=ready,
            ),
            results=produced,
            done=ready,
        )
        consumer.start()
        cleaner.start()
        self._emit("Producer, consumer and cleaner started")
        try:
            ready.wait()
            self._emit("Producer ready, starting watcher")
            _start_role("watcher", lambda: watcher.run(stop), results=outcomes, done=stop)
            stop.wait()
        finally:
            self._shutdown(consumer, cleaner)

        if not outcomes:
            raise RuntimeError("Watcher exited without an outcome.")
        report = PipelineRunReport(
            outcome=outcomes[0],
            producer=produced[0] if produced else ProducerSummary(),
            consumer=consumer.summary,
            cleaner=cleaner.summary,
            remaining_messages=store.count_messages(),
            remaining_properties=store.count_properties(),
            elapsed_seconds=time.monotonic() - started,
            samples=list(watcher.samples),
        )
        self._emit(
            f"Run finished: outcome={report.outcome.value} "
            f"remaining_messages={report.remaining_messages}",
        )
        return report

    def _shutdown(self, *schedulers: CycleScheduler) -> None:
        for scheduler in schedulers:
            scheduler.stop()
        deadline = time.monotonic() + self.settings.pipeline.shutdown_grace_seconds
        for scheduler in schedulers:
            if not scheduler.join(timeout=max(0.0, deadline - time.monotonic())):
                logger.warning("%s still busy after shutdown grace period", scheduler.name)

    def _emit(self, msg: str) -> None:
        logger.info(msg)
        self._on_progress(msg)


def _start_role(
    name: str,
    target: Callable[[], _T],
    *,
    results: list[_T],
    done: threading.Event,
) -> threading.Thread:
    def _body() -> None:
        try:
            results.append(target())
        except Exception:  # noqa: BLE001
            logger.exception("Role %s crashed", name)
        finally:
            done.set()

    thread = threading.Thread(target=_body, daemon=True, name=name)
    thread.start()
    return thread
