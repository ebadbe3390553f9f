"""Shared fixtures: a fault-injecting in-memory store, local storage, and a settable clock."""

import asyncio
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from liftlog.io.document_store import BatchOp, DocumentStoreError, InMemoryDocumentStore
from liftlog.io.local_storage import MemoryLocalStorage


class FlakyStore(InMemoryDocumentStore):
    """
    InMemoryDocumentStore that can fail or stall chosen operations.

    fail_get / fail_set / fail_add: number of upcoming calls to fail.
    fail_commits: attempt indexes (0-based) of batch commits to fail.
    yield_on_add: suspend once inside add, letting other tasks run.
    """

    def __init__(self, documents=None):
        super().__init__(documents)
        self.fail_get = 0
        self.fail_set = 0
        self.fail_add = 0
        self.fail_commits: set[int] = set()
        self.yield_on_add = False
        self.add_calls = 0
        self.set_calls = 0
        self.commit_attempts = 0
        self.committed_batches: list[list[BatchOp]] = []

    async def get(self, path):
        if self.fail_get:
            self.fail_get -= 1
            raise DocumentStoreError("get unavailable")
        return await super().get(path)

    async def set(self, path, data, merge=False):
        self.set_calls += 1
        if self.fail_set:
            self.fail_set -= 1
            raise DocumentStoreError("set unavailable")
        await super().set(path, data, merge=merge)

    async def add(self, collection, data):
        self.add_calls += 1
        if self.yield_on_add:
            await asyncio.sleep(0)
        if self.fail_add:
            self.fail_add -= 1
            raise DocumentStoreError("add unavailable")
        return await super().add(collection, data)

    async def _commit_batch(self, ops):
        attempt = self.commit_attempts
        self.commit_attempts += 1
        if attempt in self.fail_commits:
            raise DocumentStoreError(f"commit {attempt} unavailable")
        await super()._commit_batch(ops)
        self.committed_batches.append(ops)

    def docs_under(self, prefix: str) -> dict:
        return {p: d for p, d in self.snapshot().items() if p.startswith(prefix)}


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def local_storage():
    return MemoryLocalStorage()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 10, 18, 30, 0, tzinfo=timezone.utc))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
