"""Runtime configuration for the message pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class StoreSettings:
    """SQLite store and connection pool settings."""

    busy_timeout_ms: int = 30_000
    pool_size: int = 10
    max_overflow: int = 20


@dataclass(slots=True)
class PipelineSettings:
    """Cycle, dwell and watch timing for consumer, cleaner and watcher roles."""

    batch_limit: int = 10
    cycle_interval_seconds: float = 0.1
    dwell_seconds: float = 0.5
    watch_interval_seconds: float = 1.0
    shutdown_grace_seconds: float = 1.0


@dataclass(slots=True)
class ProducerSettings:
    """Producer workload settings."""

    messages_per_batch: int = 100
    batches: int = 2
    delay_seconds: float = 0.01
    properties_per_message: int = 3
    producer_id: int = 1


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    db_path: Path = Path(".message_pipeline.db")
    store: StoreSettings = field(default_factory=StoreSettings)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    producer: ProducerSettings = field(default_factory=ProducerSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults suited to a local demo run."""

        return cls(
            db_path=db_path
            or Path(os.getenv("MESSAGE_PIPELINE_DB_PATH", ".message_pipeline.db")),
            store=StoreSettings(
                busy_timeout_ms=int(
                    os.getenv("MESSAGE_PIPELINE_SQLITE_BUSY_TIMEOUT_MS", "30000"),
                ),
                pool_size=int(os.getenv("MESSAGE_PIPELINE_POOL_SIZE", "10")),
                max_overflow=int(os.getenv("MESSAGE_PIPELINE_POOL_MAX_OVERFLOW", "20")),
            ),
            pipeline=PipelineSettings(
                batch_limit=int(os.getenv("MESSAGE_PIPELINE_BATCH_LIMIT", "10")),
                cycle_interval_seconds=float(
                    os.getenv("MESSAGE_PIPELINE_CYCLE_INTERVAL_SECONDS", "0.1"),
                ),
                dwell_seconds=float(os.getenv("MESSAGE_PIPELINE_DWELL_SECONDS", "0.5")),
                watch_interval_seconds=float(
                    os.getenv("MESSAGE_PIPELINE_WATCH_INTERVAL_SECONDS", "1.0"),
                ),
                shutdown_grace_seconds=float(
                    os.getenv("MESSAGE_PIPELINE_SHUTDOWN_GRACE_SECONDS", "1.0"),
                ),
            ),
            producer=ProducerSettings(
                messages_per_batch=int(
                    os.getenv("MESSAGE_PIPELINE_MESSAGES_PER_BATCH", "100"),
                ),
                batches=int(os.getenv("MESSAGE_PIPELINE_BATCHES", "2")),
                delay_seconds=float(
                    os.getenv("MESSAGE_PIPELINE_PRODUCER_DELAY_SECONDS", "0.01"),
                ),
                properties_per_message=int(
                    os.getenv("MESSAGE_PIPELINE_PROPERTIES_PER_MESSAGE", "3"),
                ),
                producer_id=int(os.getenv("MESSAGE_PIPELINE_PRODUCER_ID", "1")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any setting would break a run."""

        if self.store.busy_timeout_ms <= 0:
            raise ValueError("MESSAGE_PIPELINE_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.store.pool_size <= 0:
            raise ValueError("MESSAGE_PIPELINE_POOL_SIZE must be > 0.")
        if self.store.max_overflow < 0:
            raise ValueError("MESSAGE_PIPELINE_POOL_MAX_OVERFLOW must be >= 0.")

        pipeline = self.pipeline
        if pipeline.batch_limit <= 0:
            raise ValueError("MESSAGE_PIPELINE_BATCH_LIMIT must be a positive integer.")
        if pipeline.cycle_interval_seconds <= 0:
            raise ValueError("MESSAGE_PIPELINE_CYCLE_INTERVAL_SECONDS must be > 0.")
        if pipeline.watch_interval_seconds <= 0:
            raise ValueError("MESSAGE_PIPELINE_WATCH_INTERVAL_SECONDS must be > 0.")
        if pipeline.dwell_seconds < 0:
            raise ValueError("MESSAGE_PIPELINE_DWELL_SECONDS must be >= 0.")
        if pipeline.shutdown_grace_seconds < 0:
            raise ValueError("MESSAGE_PIPELINE_SHUTDOWN_GRACE_SECONDS must be >= 0.")
        # one consumer cycle plus one cleaner pass must fit inside a watch interval
        if (
            pipeline.dwell_seconds + 2 * pipeline.cycle_interval_seconds
            >= pipeline.watch_interval_seconds
        ):
            raise ValueError(
                "MESSAGE_PIPELINE_WATCH_INTERVAL_SECONDS must exceed "
                "MESSAGE_PIPELINE_DWELL_SECONDS + 2 * MESSAGE_PIPELINE_CYCLE_INTERVAL_SECONDS.",
            )

        producer = self.producer
        if producer.messages_per_batch < 0:
            raise ValueError("MESSAGE_PIPELINE_MESSAGES_PER_BATCH must be >= 0.")
        if producer.batches < 0:
            raise ValueError("MESSAGE_PIPELINE_BATCHES must be >= 0.")
        if producer.delay_seconds < 0:
            raise ValueError("MESSAGE_PIPELINE_PRODUCER_DELAY_SECONDS must be >= 0.")
        if producer.properties_per_message < 0:
            raise ValueError("MESSAGE_PIPELINE_PROPERTIES_PER_MESSAGE must be >= 0.")

        # consumer and cleaner each fan out one batch, plus producer and watcher
        required = 2 * pipeline.batch_limit + 2
        available = self.store.pool_size + self.store.max_overflow
        if available < required:
            raise ValueError(
                "Connection pool too small: "
                f"pool_size + max_overflow = {available}, need at least {required} "
                "(MESSAGE_PIPELINE_POOL_SIZE / MESSAGE_PIPELINE_POOL_MAX_OVERFLOW).",
            )
