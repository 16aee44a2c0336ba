"""Controllers for pipeline CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path

from message_pipeline.config import Settings
from message_pipeline.models import MessageState
from message_pipeline.pipeline.orchestrator import PipelineOrchestrator
from message_pipeline.storage.repository import MessageStore


@dataclass(slots=True)
class PipelineRunCommand:
    """CLI input for a full orchestrated run."""

    db_path: Path | None
    messages_per_batch: int | None = None
    batches: int | None = None
    delay_seconds: float | None = None


@dataclass(slots=True)
class PipelineStatsCommand:
    """CLI input for store statistics."""

    db_path: Path | None


class PipelineCliController:
    """Application controller behind the CLI commands."""

    def run(self, command: PipelineRunCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        producer = settings.producer
        if command.messages_per_batch is not None:
            producer = replace(producer, messages_per_batch=command.messages_per_batch)
        if command.batches is not None:
            producer = replace(producer, batches=command.batches)
        if command.delay_seconds is not None:
            producer = replace(producer, delay_seconds=command.delay_seconds)
        settings = replace(settings, producer=producer)

        progress: list[str] = []
        report = PipelineOrchestrator(settings, on_progress=progress.append).run()
        return [
            *progress,
            f"Outcome: {report.outcome.value}",
            "Producer: "
            f"inserted={report.producer.inserted} failed={report.producer.failed}",
            "Consumer: "
            f"cycles={report.consumer.cycles} tasks={report.consumer.dispatched}",
            f"Cleaner: cycles={report.cleaner.cycles} tasks={report.cleaner.dispatched}",
            "Remaining: "
            f"messages={report.remaining_messages} properties={report.remaining_properties}",
            f"Elapsed: {report.elapsed_seconds:.2f}s",
        ]

    def stats(self, command: PipelineStatsCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _store(settings) as store:
            counts = store.count_by_state()
            properties = store.count_properties()
        lines = [f"{state.value}: {counts[state]}" for state in MessageState]
        lines.append(f"properties: {properties}")
        return lines


@contextmanager
def _store(settings: Settings) -> Iterator[MessageStore]:
    store = MessageStore(
        settings.db_path,
        busy_timeout_ms=settings.store.busy_timeout_ms,
        pool_size=settings.store.pool_size,
        max_overflow=settings.store.max_overflow,
    )
    store.init_schema()
    try:
        yield store
    finally:
        store.close()
