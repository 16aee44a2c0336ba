"""Fan-out of one thread per message id, joined on a completion counter."""

from __future__ import annotations

import logging
import threading

from message_pipeline.models import MessageState
from message_pipeline.pipeline.fetcher import BatchFetcher
from message_pipeline.pipeline.tasks import WorkerTask

logger = logging.getLogger(__name__)

DEFAULT_BATCH_LIMIT = 10


class CompletionCounter:
    """Down-counter released once ``expected`` completion signals arrived."""

    def __init__(self, expected: int) -> None:
        if expected < 0:
            raise ValueError("expected must be >= 0")
        self._remaining = expected
        self._condition = threading.Condition()

    @property
    def remaining(self) -> int:
        with self._condition:
            return self._remaining

    def signal(self) -> None:
        with self._condition:
            if self._remaining <= 0:
                raise RuntimeError("Completion signalled more times than expected.")
            self._remaining -= 1
            if self._remaining == 0:
                self._condition.notify_all()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until every expected signal arrived; ``False`` on timeout."""

        with self._condition:
            return self._condition.wait_for(lambda: self._remaining == 0, timeout=timeout)


class FanOutRunner:
    """Fetch one batch and run a task per id concurrently, returning when all finished."""

    def __init__(
        self,
        fetcher: BatchFetcher,
        *,
        limit: int = DEFAULT_BATCH_LIMIT,
        name: str = "fanout",
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self.fetcher = fetcher
        self.limit = limit
        self.name = name

    def run_cycle(self, state: MessageState, task: WorkerTask) -> int:
        """Run one cycle; returns the number of completion signals received."""

        message_ids = self.fetcher.fetch(state, self.limit)
        if not message_ids:
            return 0
        logger.debug(
            "%s: ids to handle in %s state: [%s]",
            self.name,
            state.value,
            ",".join(str(message_id) for message_id in message_ids),
        )

        counter = CompletionCounter(len(message_ids))
        for message_id in message_ids:
            threading.Thread(
                target=_run_task,
                args=(task, message_id, counter),
                daemon=True,
                name=f"{self.name}-{message_id}",
            ).start()
        counter.wait()
        return len(message_ids)


def _run_task(task: WorkerTask, message_id: int, counter: CompletionCounter) -> None:
    try:
        task(message_id)
    except Exception:  # noqa: BLE001
        logger.exception("Task for message %s raised", message_id)
    finally:
        counter.signal()
