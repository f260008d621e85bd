from __future__ import annotations

import sqlite3
from typing import Any, Callable, Dict, Generic, Iterator, Optional, Tuple, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from .errors import Corrupt, NotFound, StorageFault

T = TypeVar("T")

# Sentinel stored in a transaction overlay for a pending delete.
_TOMBSTONE = object()


def _key(key: Any) -> bytes:
    if isinstance(key, str):
        return key.encode("utf-8")
    return bytes(key)


def _encode(adapter: TypeAdapter, key: str, value: Any) -> bytes:
    """Serialize value, refusing anything a later load would reject as corrupt."""
    raw = adapter.dump_json(value)
    try:
        adapter.validate_json(raw)
    except ValidationError as exc:
        raise StorageFault(key, f"Refusing to write invalid value under {key!r}: {exc}") from exc
    return raw


class MemoryStorage:
    """Dict-backed byte store."""

    def __init__(self, data: Optional[Dict[bytes, bytes]] = None) -> None:
        self._data: Dict[bytes, bytes] = dict(data or {})

    def get(self, key: Any) -> Optional[bytes]:
        return self._data.get(_key(key))

    def set(self, key: Any, value: bytes) -> None:
        self._data[_key(key)] = bytes(value)

    def remove(self, key: Any) -> None:
        self._data.pop(_key(key), None)

    def items(self) -> Iterator[Tuple[bytes, bytes]]:
        for key in sorted(self._data):
            yield key, self._data[key]

    def snapshot(self) -> Dict[bytes, bytes]:
        return dict(self._data)


class SqliteStorage:
    """Byte store persisted to a single sqlite table."""

    def __init__(self, path: str) -> None:
        self._conn = sqlite3.connect(path)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key BLOB PRIMARY KEY,
                value BLOB NOT NULL
            )
            """
        )
        self._conn.commit()

    def get(self, key: Any) -> Optional[bytes]:
        k = _key(key)
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (k,)).fetchone()
        except sqlite3.Error as exc:
            raise StorageFault(k.decode("utf-8", "replace"), f"read failed: {exc}") from exc
        if row is None:
            return None
        return bytes(row[0])

    def set(self, key: Any, value: bytes) -> None:
        k = _key(key)
        try:
            self._conn.execute(
                """
                INSERT INTO kv (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                (k, bytes(value)),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StorageFault(k.decode("utf-8", "replace"), f"write failed: {exc}") from exc

    def remove(self, key: Any) -> None:
        k = _key(key)
        try:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (k,))
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StorageFault(k.decode("utf-8", "replace"), f"delete failed: {exc}") from exc

    def items(self) -> Iterator[Tuple[bytes, bytes]]:
        for key, value in self._conn.execute("SELECT key, value FROM kv ORDER BY key"):
            yield bytes(key), bytes(value)

    def close(self) -> None:
        self._conn.close()


class PrefixedStorage:
    """View of another store restricted to one namespace.

    The namespace is length-prefixed so that no namespace is a prefix of
    another's keys.
    """

    def __init__(self, inner: Any, namespace: str) -> None:
        ns = namespace.encode("utf-8")
        self._inner = inner
        self._prefix = len(ns).to_bytes(2, "big") + ns

    def get(self, key: Any) -> Optional[bytes]:
        return self._inner.get(self._prefix + _key(key))

    def set(self, key: Any, value: bytes) -> None:
        self._inner.set(self._prefix + _key(key), value)

    def remove(self, key: Any) -> None:
        self._inner.remove(self._prefix + _key(key))

    def items(self) -> Iterator[Tuple[bytes, bytes]]:
        for key, value in self._inner.items():
            if key.startswith(self._prefix):
                yield key[len(self._prefix):], value


class StorageTransaction:
    """Write overlay: reads fall through, writes stay pending until commit."""

    def __init__(self, inner: Any) -> None:
        self._inner = inner
        self._pending: Dict[bytes, Any] = {}

    def get(self, key: Any) -> Optional[bytes]:
        k = _key(key)
        if k in self._pending:
            value = self._pending[k]
            return None if value is _TOMBSTONE else value
        return self._inner.get(k)

    def set(self, key: Any, value: bytes) -> None:
        self._pending[_key(key)] = bytes(value)

    def remove(self, key: Any) -> None:
        self._pending[_key(key)] = _TOMBSTONE

    def items(self) -> Iterator[Tuple[bytes, bytes]]:
        merged: Dict[bytes, Optional[bytes]] = dict(self._inner.items())
        for key, value in self._pending.items():
            merged[key] = None if value is _TOMBSTONE else value
        for key in sorted(merged):
            value = merged[key]
            if value is not None:
                yield key, value

    def commit(self) -> None:
        for key, value in self._pending.items():
            if value is _TOMBSTONE:
                self._inner.remove(key)
            else:
                self._inner.set(key, value)
        self._pending.clear()

    def discard(self) -> None:
        self._pending.clear()


class Item(Generic[T]):
    """A named singleton slot holding one value of a declared type.

    Values are stored as JSON bytes produced by a pydantic TypeAdapter.
    """

    def __init__(self, key: str, value_type: Type[T]) -> None:
        self.key = key
        self._adapter: TypeAdapter[T] = TypeAdapter(value_type)

    def _decode(self, raw: bytes) -> T:
        try:
            return self._adapter.validate_json(raw)
        except ValidationError as exc:
            raise Corrupt(self.key, str(exc)) from exc

    def may_load(self, storage: Any) -> Optional[T]:
        raw = storage.get(self.key)
        if raw is None:
            return None
        return self._decode(raw)

    def load(self, storage: Any) -> T:
        raw = storage.get(self.key)
        if raw is None:
            raise NotFound(self.key)
        return self._decode(raw)

    def exists(self, storage: Any) -> bool:
        return storage.get(self.key) is not None

    def save(self, storage: Any, value: T) -> None:
        storage.set(self.key, _encode(self._adapter, self.key, value))

    def update(self, storage: Any, fn: Callable[[T], T]) -> T:
        """Load, transform and save; nothing is written if fn raises."""
        value = fn(self.load(storage))
        self.save(storage, value)
        return value

    def remove(self, storage: Any) -> None:
        storage.remove(self.key)


class Map(Generic[T]):
    """Values of one declared type keyed by string under a namespace."""

    def __init__(self, namespace: str, value_type: Type[T]) -> None:
        self.namespace = namespace
        self._adapter: TypeAdapter[T] = TypeAdapter(value_type)

    def _full_key(self, key: str) -> str:
        return f"{self.namespace}/{key}"

    def may_load(self, storage: Any, key: str) -> Optional[T]:
        full_key = self._full_key(key)
        raw = storage.get(full_key)
        if raw is None:
            return None
        try:
            return self._adapter.validate_json(raw)
        except ValidationError as exc:
            raise Corrupt(full_key, str(exc)) from exc

    def load(self, storage: Any, key: str) -> T:
        value = self.may_load(storage, key)
        if value is None:
            raise NotFound(self._full_key(key))
        return value

    def save(self, storage: Any, key: str, value: T) -> None:
        full_key = self._full_key(key)
        storage.set(full_key, _encode(self._adapter, full_key, value))

    def remove(self, storage: Any, key: str) -> None:
        storage.remove(self._full_key(key))


def open_storage(db_path: Optional[str] = None) -> Any:
    """Sqlite-backed storage when a path is given, in-memory otherwise."""
    if db_path:
        return SqliteStorage(db_path)
    return MemoryStorage()
