"""Watcher role: polls the message count and declares the run finished.

The watcher is a two-state machine, ``Running(last_count)`` and
``Stopped``. Every interval it samples the number of messages left in the
store and either stops or carries the new sample forward:

* a count of zero means the store drained (``DRAINED``);
* a count equal to the previous sample means no progress was made during a
  whole interval (``STALLED``). This is a quiescence detector, so a
  genuinely stuck run also ends here; it is reported separately so callers
  can tell it apart from a real drain;
* repeated store failures while sampling end the run as ``UNAVAILABLE``.

The first comparison is against ``Running(0)``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable

from sqlalchemy.exc import SQLAlchemyError

from message_pipeline.models import MessageState, WatchOutcome
from message_pipeline.storage.repository import MessageStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_SAMPLE_FAILURES = 3


def advance(last_count: int, count: int) -> WatchOutcome | None:
    """Evaluate one sample; ``None`` means keep running with ``count`` as the new last."""

    if count == 0:
        return WatchOutcome.DRAINED
    if count == last_count:
        return WatchOutcome.STALLED
    return None


class Watcher:
    """Samples the store every ``interval_seconds`` until a terminal outcome.

    With ``states=None`` a sample counts every row left in ``messages``,
    done rows included, so the run ends only after the cleaner has deleted
    them. This is wider than a count of unfinished messages; pass
    ``states=(PENDING, ACTIVE)`` to count only those.
    """

    def __init__(
        self,
        store: MessageStore,
        *,
        interval_seconds: float,
        states: Iterable[MessageState] | None = None,
        max_sample_failures: int = DEFAULT_MAX_SAMPLE_FAILURES,
    ) -> None:
        self.store = store
        self.interval_seconds = interval_seconds
        self.states = tuple(states) if states is not None else None
        self.max_sample_failures = max_sample_failures
        self.samples: list[int] = []

    def run(self, stop: threading.Event | None = None) -> WatchOutcome:
        """Sample until a terminal outcome, then set ``stop`` and return it."""

        last_count = 0
        failures = 0
        while True:
            time.sleep(self.interval_seconds)
            try:
                count = self.store.count_messages(self.states)
            except SQLAlchemyError:
                failures += 1
                logger.exception("Watch sample failed (%d in a row)", failures)
                if failures >= self.max_sample_failures:
                    return self._finish(WatchOutcome.UNAVAILABLE, stop)
                continue

            failures = 0
            self.samples.append(count)
            logger.info("Count = %d", count)
            outcome = advance(last_count, count)
            if outcome is not None:
                return self._finish(outcome, stop)
            last_count = count

    def _finish(self, outcome: WatchOutcome, stop: threading.Event | None) -> WatchOutcome:
        if outcome is WatchOutcome.DRAINED:
            logger.info("Message store drained")
        else:
            logger.warning(
                "Watcher stopping without a drained store: %s (last samples %s)",
                outcome.value,
                self.samples[-2:],
            )
        if stop is not None:
            stop.set()
        return outcome
