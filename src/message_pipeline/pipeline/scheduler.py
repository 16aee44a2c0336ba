"""Fixed-interval cycle scheduler for consumer and cleaner roles."""

from __future__ import annotations

import logging
import threading

from message_pipeline.models import MessageState, SchedulerSummary
from message_pipeline.pipeline.fanout import FanOutRunner
from message_pipeline.pipeline.tasks import WorkerTask

logger = logging.getLogger(__name__)


class CycleScheduler:
    """Repeat one fan-out cycle every ``interval_seconds`` until stopped.

    Stopping is cooperative: the cycle in progress, including its
    already-launched tasks, finishes before the loop exits. A cycle that
    raises is logged and counted in ``summary.failed_cycles``; the loop
    carries on with the next one.
    """

    def __init__(
        self,
        *,
        runner: FanOutRunner,
        state: MessageState,
        task: WorkerTask,
        interval_seconds: float,
        name: str,
    ) -> None:
        self.runner = runner
        self.state = state
        self.task = task
        self.interval_seconds = interval_seconds
        self.name = name
        self.summary = SchedulerSummary(name=name)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> SchedulerSummary:
        """Loop in the calling thread until :meth:`stop` is called."""

        logger.info("Starting %s", self.name)
        while True:
            try:
                completed = self.runner.run_cycle(self.state, self.task)
            except Exception:  # noqa: BLE001
                self.summary.failed_cycles += 1
                logger.exception("%s cycle failed", self.name)
            else:
                self.summary.dispatched += completed
            self.summary.cycles += 1
            if self._stop.wait(timeout=self.interval_seconds):
                break
        logger.info(
            "Stopped %s after %d cycles (%d tasks, %d failed cycles)",
            self.name,
            self.summary.cycles,
            self.summary.dispatched,
            self.summary.failed_cycles,
        )
        return self.summary

    def start(self) -> None:
        if self.running:
            raise RuntimeError(f"{self.name} is already running.")
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, daemon=True, name=self.name)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the loop thread; ``True`` once it has exited."""

        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()
