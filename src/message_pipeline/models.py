"""Domain models for messages and pipeline run reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class MessageState(str, Enum):
    """Message lifecycle states; progression is pending -> active -> done."""

    PENDING = "pending"
    ACTIVE = "active"
    DONE = "done"


class WatchOutcome(str, Enum):
    """Why the watcher declared the run finished."""

    DRAINED = "drained"
    STALLED = "stalled"
    UNAVAILABLE = "unavailable"


@dataclass(slots=True)
class ProducerSummary:
    """Counters for one producer run."""

    inserted: int = 0
    failed: int = 0


@dataclass(slots=True)
class SchedulerSummary:
    """Counters for one cycle scheduler."""

    name: str
    cycles: int = 0
    dispatched: int = 0
    failed_cycles: int = 0


@dataclass(slots=True)
class PipelineRunReport:
    """Result of a complete orchestrated run."""

    outcome: WatchOutcome
    producer: ProducerSummary
    consumer: SchedulerSummary
    cleaner: SchedulerSummary
    remaining_messages: int
    remaining_properties: int
    elapsed_seconds: float
    samples: list[int] = field(default_factory=list)
