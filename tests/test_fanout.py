from __future__ import annotations

import threading
import time
from collections.abc import Callable
from pathlib import Path

import allure
import pytest
from sqlalchemy.exc import OperationalError

from message_pipeline.models import MessageState
from message_pipeline.pipeline.fanout import CompletionCounter, FanOutRunner
from message_pipeline.pipeline.fetcher import BatchFetcher
from message_pipeline.pipeline.tasks import DeleteEntryTask, ProcessEntryTask
from message_pipeline.storage.repository import MessageStore

pytestmark = [
    allure.epic("Pipeline Roles"),
    allure.feature("Fan-out / Fan-in"),
]


class _StaticFetcher:
    def __init__(self, message_ids: list[int]) -> None:
        self.message_ids = message_ids
        self.calls: list[tuple[MessageState, int]] = []

    def fetch(self, state: MessageState, limit: int) -> list[int]:
        self.calls.append((state, limit))
        return self.message_ids[:limit]


class _RecordingTask:
    def __init__(self, *, delay: float = 0.0, fail_on: frozenset[int] = frozenset()) -> None:
        self.delay = delay
        self.fail_on = fail_on
        self.seen: list[int] = []
        self.threads: set[str] = set()
        self._lock = threading.Lock()

    def __call__(self, message_id: int) -> bool:
        time.sleep(self.delay)
        with self._lock:
            self.seen.append(message_id)
            self.threads.add(threading.current_thread().name)
        if message_id in self.fail_on:
            raise RuntimeError(f"boom {message_id}")
        return True


class _FlakyStore(MessageStore):
    """Fails the first processing attempt of selected messages."""

    def __init__(self, db_path: Path, *, fail_once: set[int]) -> None:
        super().__init__(db_path)
        self.fail_once = fail_once

    def process_message(self, message_id: int, *, dwell_seconds: float) -> bool:
        if message_id in self.fail_once:
            self.fail_once.discard(message_id)
            raise OperationalError("UPDATE messages", {}, Exception("database is locked"))
        return super().process_message(message_id, dwell_seconds=dwell_seconds)


def test_counter_releases_after_expected_signals() -> None:
    counter = CompletionCounter(3)
    counter.signal()
    counter.signal()

    assert counter.wait(timeout=0.05) is False
    assert counter.remaining == 1

    counter.signal()
    assert counter.wait(timeout=0.05) is True


def test_counter_with_zero_expected_returns_immediately() -> None:
    assert CompletionCounter(0).wait(timeout=0) is True


def test_counter_rejects_extra_signals() -> None:
    counter = CompletionCounter(1)
    counter.signal()

    with pytest.raises(RuntimeError, match="more times than expected"):
        counter.signal()


def test_counter_rejects_negative_expectation() -> None:
    with pytest.raises(ValueError, match="expected"):
        CompletionCounter(-1)


def test_empty_batch_returns_without_launching_tasks() -> None:
    task = _RecordingTask()
    runner = FanOutRunner(_StaticFetcher([]), limit=10)  # type: ignore[arg-type]

    assert runner.run_cycle(MessageState.PENDING, task) == 0
    assert task.seen == []


@pytest.mark.parametrize("size", [1, 4, 10])
def test_run_cycle_waits_for_every_task(size: int) -> None:
    task = _RecordingTask(delay=0.05)
    fetcher = _StaticFetcher(list(range(100, 100 + size)))
    runner = FanOutRunner(fetcher, limit=10, name="worker")  # type: ignore[arg-type]

    completed = runner.run_cycle(MessageState.DONE, task)

    assert completed == size
    assert sorted(task.seen) == list(range(100, 100 + size))
    assert fetcher.calls == [(MessageState.DONE, 10)]
    assert task.threads == {f"worker-{message_id}" for message_id in range(100, 100 + size)}


def test_run_cycle_runs_tasks_concurrently() -> None:
    task = _RecordingTask(delay=0.3)
    runner = FanOutRunner(_StaticFetcher(list(range(10))), limit=10)  # type: ignore[arg-type]

    started = time.monotonic()
    runner.run_cycle(MessageState.PENDING, task)

    assert time.monotonic() - started < 2.0


def test_raising_task_still_counts_as_completed() -> None:
    task = _RecordingTask(fail_on=frozenset({2, 5}))
    runner = FanOutRunner(_StaticFetcher(list(range(8))), limit=10)  # type: ignore[arg-type]

    assert runner.run_cycle(MessageState.PENDING, task) == 8
    assert sorted(task.seen) == list(range(8))


def test_runner_rejects_non_positive_limit(store: MessageStore) -> None:
    with pytest.raises(ValueError, match="limit"):
        FanOutRunner(BatchFetcher(store), limit=0)


def test_one_consumer_cycle_processes_a_full_batch(
    store: MessageStore,
    seed: Callable[[int], list[int]],
) -> None:
    message_ids = seed(10)
    runner = FanOutRunner(BatchFetcher(store), limit=10, name="consumer")

    completed = runner.run_cycle(
        MessageState.PENDING,
        ProcessEntryTask(store, dwell_seconds=0.01),
    )

    assert completed == 10
    assert {store.message_state(message_id) for message_id in message_ids} == {
        MessageState.DONE,
    }
    assert store.list_message_ids(MessageState.PENDING, 10) == []


def test_processor_tasks_dwell_in_parallel(
    store: MessageStore,
    seed: Callable[[int], list[int]],
) -> None:
    dwell = 0.3
    seed(10)
    runner = FanOutRunner(BatchFetcher(store), limit=10, name="consumer")
    task = ProcessEntryTask(store, dwell_seconds=dwell)

    started = time.monotonic()
    completed = runner.run_cycle(MessageState.PENDING, task)
    elapsed = time.monotonic() - started

    assert completed == 10
    assert store.count_messages([MessageState.DONE]) == 10
    assert elapsed < 2 * dwell


def test_consumer_batches_drain_monotonically(
    store: MessageStore,
    seed: Callable[[int], list[int]],
) -> None:
    seed(25)
    fetcher = BatchFetcher(store)
    runner = FanOutRunner(fetcher, limit=10)
    task = ProcessEntryTask(store, dwell_seconds=0)

    seen: list[set[int]] = []
    while batch := fetcher.fetch(MessageState.PENDING, 10):
        seen.append(set(batch))
        runner.run_cycle(MessageState.PENDING, task)

    assert [len(batch) for batch in seen] == [10, 10, 5]
    assert not seen[0] & seen[1]
    assert not seen[1] & seen[2]
    assert store.count_messages([MessageState.DONE]) == 25


def test_transient_failure_is_retried_on_next_cycle(
    tmp_path: Path,
) -> None:
    store = _FlakyStore(tmp_path / "flaky.db", fail_once=set())
    store.init_schema()
    try:
        message_ids = [store.insert_message(number=number) for number in range(10)]
        failing = message_ids[3]
        store.fail_once.add(failing)
        runner = FanOutRunner(BatchFetcher(store), limit=10)
        task = ProcessEntryTask(store, dwell_seconds=0.01)

        assert runner.run_cycle(MessageState.PENDING, task) == 10
        assert store.message_state(failing) == MessageState.PENDING
        assert store.count_messages([MessageState.DONE]) == 9

        assert runner.run_cycle(MessageState.PENDING, task) == 1
        assert store.message_state(failing) == MessageState.DONE
    finally:
        store.close()


def test_cleaner_cycle_deletes_only_done_messages(
    store: MessageStore,
    seed: Callable[[int], list[int]],
) -> None:
    done_ids = seed(4)
    pending_ids = seed(2)
    for message_id in done_ids:
        store.process_message(message_id, dwell_seconds=0)
    runner = FanOutRunner(BatchFetcher(store), limit=10, name="cleaner")

    assert runner.run_cycle(MessageState.DONE, DeleteEntryTask(store)) == 4

    assert store.count_messages() == 2
    assert store.count_properties() == 6
    assert {store.message_state(message_id) for message_id in pending_ids} == {
        MessageState.PENDING,
    }
