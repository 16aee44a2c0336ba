"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from message_pipeline.storage.repository import MessageStore


@pytest.fixture()
def store(tmp_path: Path) -> Iterator[MessageStore]:
    """Migrated message store on a temporary SQLite file."""
    message_store = MessageStore(tmp_path / "pipeline.db", busy_timeout_ms=10_000)
    message_store.init_schema()
    yield message_store
    message_store.close()


@pytest.fixture()
def seed(store: MessageStore) -> Callable[[int], list[int]]:
    """Insert ``count`` pending messages with three properties each."""

    def _seed(count: int) -> list[int]:
        return [
            store.insert_message(
                number=number,
                producer_id=1,
                properties=[(f"key #{i}", f"value #{i}") for i in range(3)],
            )
            for number in range(count)
        ]

    return _seed
