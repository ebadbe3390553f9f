"""
Durable document store interface and reference implementations.

The store is addressed by slash-separated paths alternating collection and
document ids (``artifacts/{app}/users/{uid}/rate_limits/{action}``).  All
operations are coroutines because the production store is remote; the
implementations here are local and complete immediately.

- InMemoryDocumentStore: process-local, used by tests and embedding code.
- JsonFileDocumentStore: one JSON file per document, used by the CLI.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from ..core.config import BATCH_WRITE_LIMIT

LOGGER = logging.getLogger(__name__)


class DocumentStoreError(Exception):
    """Raised when a store operation cannot be completed."""

    pass


class BatchLimitExceeded(DocumentStoreError):
    """Raised when a batch holds more operations than the store accepts."""

    pass


@dataclass(frozen=True)
class BatchOp:
    """One queued ``set`` inside a WriteBatch."""

    path: str
    data: dict[str, Any]
    merge: bool = False


def _split(path: str) -> list[str]:
    parts = path.split("/")
    if not path or any(not p or p in (".", "..") for p in parts):
        raise DocumentStoreError(f"Invalid path: {path!r}")
    return parts


def check_document_path(path: str) -> str:
    """Return *path* if it names a document (even number of segments)."""
    if len(_split(path)) % 2 != 0:
        raise DocumentStoreError(f"Not a document path: {path!r}")
    return path


def check_collection_path(path: str) -> str:
    """Return *path* if it names a collection (odd number of segments)."""
    if len(_split(path)) % 2 != 1:
        raise DocumentStoreError(f"Not a collection path: {path!r}")
    return path


def merge_documents(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = merge_documents(result[k], v)
        else:
            result[k] = v
    return result


def new_document_id() -> str:
    """Random id for ``add``; 20 characters like the hosted store's auto ids."""
    return uuid.uuid4().hex[:20]


class WriteBatch:
    """
    Queue of ``set`` operations committed together.

    A batch applies all of its operations or none of them.  It can be
    committed once; committing more than ``limit`` operations raises
    BatchLimitExceeded before anything is written.
    """

    def __init__(self, store: "DocumentStore", limit: int = BATCH_WRITE_LIMIT):
        self._store = store
        self._limit = limit
        self._ops: list[BatchOp] = []
        self._committed = False

    def __len__(self) -> int:
        return len(self._ops)

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> "WriteBatch":
        """Queue a document write."""
        if self._committed:
            raise DocumentStoreError("Batch already committed")
        check_document_path(path)
        self._ops.append(BatchOp(path=path, data=copy.deepcopy(data), merge=merge))
        return self

    async def commit(self) -> None:
        """Apply every queued operation atomically."""
        if self._committed:
            raise DocumentStoreError("Batch already committed")
        if len(self._ops) > self._limit:
            raise BatchLimitExceeded(
                f"Batch has {len(self._ops)} operations; limit is {self._limit}"
            )
        await self._store._commit_batch(list(self._ops))
        self._committed = True


class DocumentStore(ABC):
    """Contract the session, quota and migration layers rely on."""

    batch_limit: int = BATCH_WRITE_LIMIT

    @abstractmethod
    async def get(self, path: str) -> dict[str, Any] | None:
        """Return the document at *path*, or None if it does not exist."""

    @abstractmethod
    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        """Create or overwrite a document; with ``merge`` update it in place."""

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Create a document with a generated id in *collection*; return the id."""

    @abstractmethod
    async def list(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(id, data)`` for every document directly in *collection*."""

    @abstractmethod
    async def _commit_batch(self, ops: list[BatchOp]) -> None:
        """Apply *ops* all-or-nothing."""

    def batch(self) -> WriteBatch:
        """Start a new write batch."""
        return WriteBatch(self, limit=self.batch_limit)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store.  Documents are deep-copied on the way in and out."""

    def __init__(self, documents: dict[str, dict[str, Any]] | None = None):
        self._docs: dict[str, dict[str, Any]] = {}
        for path, data in (documents or {}).items():
            self._docs[check_document_path(path)] = copy.deepcopy(data)

    def _apply(self, path: str, data: dict[str, Any], merge: bool) -> None:
        existing = self._docs.get(path)
        if merge and existing is not None:
            self._docs[path] = merge_documents(existing, copy.deepcopy(data))
        else:
            self._docs[path] = copy.deepcopy(data)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Copy of every stored document keyed by path."""
        return copy.deepcopy(self._docs)

    async def get(self, path: str) -> dict[str, Any] | None:
        data = self._docs.get(check_document_path(path))
        return copy.deepcopy(data) if data is not None else None

    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        self._apply(check_document_path(path), data, merge)

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        check_collection_path(collection)
        doc_id = new_document_id()
        self._apply(f"{collection}/{doc_id}", data, merge=False)
        return doc_id

    async def list(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        prefix = check_collection_path(collection) + "/"
        return [
            (path[len(prefix):], copy.deepcopy(data))
            for path, data in self._docs.items()
            if path.startswith(prefix) and "/" not in path[len(prefix):]
        ]

    async def _commit_batch(self, ops: list[BatchOp]) -> None:
        for op in ops:
            self._apply(op.path, op.data, op.merge)


class JsonFileDocumentStore(DocumentStore):
    """
    Store keeping each document in ``<root>/<path>.json``.

    Files are replaced atomically.  A batch stages every file first and only
    then renames them into place, so a failure while staging writes nothing.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _doc_file(self, path: str) -> Path:
        *parents, doc_id = _split(check_document_path(path))
        return self.root.joinpath(*parents, f"{doc_id}.json")

    def _read(self, path: str) -> dict[str, Any] | None:
        doc_file = self._doc_file(path)
        if not doc_file.exists():
            return None
        try:
            with open(doc_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise DocumentStoreError(f"Could not read {doc_file}: {e}") from e
        if not isinstance(data, dict):
            raise DocumentStoreError(f"{doc_file} must contain a JSON object")
        return data

    def _stage(self, path: str, data: dict[str, Any], merge: bool) -> tuple[Path, Path]:
        """Write the new document next to its target; return (temp, target)."""
        if merge:
            existing = self._read(path)
            if existing is not None:
                data = merge_documents(existing, data)

        target = self._doc_file(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(data, indent=2, sort_keys=True) + "\n"
        with NamedTemporaryFile(
            "w", dir=target.parent, delete=False, suffix=".tmp", encoding="utf-8"
        ) as tmp:
            tmp.write(payload)
        return Path(tmp.name), target

    async def get(self, path: str) -> dict[str, Any] | None:
        return self._read(path)

    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        temp, target = self._stage(path, data, merge)
        temp.replace(target)

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        check_collection_path(collection)
        doc_id = new_document_id()
        await self.set(f"{collection}/{doc_id}", data)
        return doc_id

    async def list(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        directory = self.root.joinpath(*_split(check_collection_path(collection)))
        if not directory.is_dir():
            return []
        docs: list[tuple[str, dict[str, Any]]] = []
        for doc_file in sorted(directory.glob("*.json")):
            doc_id = doc_file.stem
            data = self._read(f"{collection}/{doc_id}")
            if data is not None:
                docs.append((doc_id, data))
        return docs

    async def _commit_batch(self, ops: list[BatchOp]) -> None:
        staged: list[tuple[Path, Path]] = []
        try:
            for op in ops:
                staged.append(self._stage(op.path, op.data, op.merge))
        except BaseException:
            for temp, _ in staged:
                try:
                    os.unlink(temp)
                except OSError:
                    LOGGER.warning("Could not remove staged file %s", temp)
            raise
        for temp, target in staged:
            temp.replace(target)
