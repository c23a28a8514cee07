"""In-memory table of typed values."""

from __future__ import annotations

import copy
import json
import threading
from typing import Optional

from vapordb.errors import StorageIOError, TypeMismatchError
from vapordb.ttl import ExpirationTable
from vapordb.values import Value, value_to_json


class MemTable:
    """Thread-safe in-memory store of strings, hashes, lists and sets."""

    def __init__(self, expiration_table: Optional[ExpirationTable] = None) -> None:
        self.data: dict[str, Value] = {}
        self.lock = threading.RLock()
        self.expiration_table = (
            expiration_table if expiration_table is not None else ExpirationTable()
        )

    def __len__(self) -> int:
        with self.lock:
            return len(self.data)

    def clear(self) -> None:
        with self.lock:
            self.data.clear()

    def flush_to_sstable(self, path) -> None:
        """Write every entry as a ``key<TAB>json`` line."""
        with self.lock:
            lines = [
                f"{key}\t{json.dumps(value_to_json(value), separators=(',', ':'))}\n"
                for key, value in self.data.items()
            ]
        try:
            with open(path, "w", encoding="utf-8") as handle:
                handle.writelines(lines)
        except OSError as exc:
            raise StorageIOError(exc) from exc

    def lpush(self, key: str, value: str) -> None:
        with self.lock:
            items = self.data.setdefault(key, [])
            if not isinstance(items, list):
                raise TypeMismatchError("Expected List")
            items.insert(0, value)

    def rpush(self, key: str, value: str) -> None:
        with self.lock:
            items = self.data.setdefault(key, [])
            if not isinstance(items, list):
                raise TypeMismatchError("Expected List")
            items.append(value)

    def lpop(self, key: str) -> Optional[str]:
        with self.lock:
            items = self.data.get(key)
            if isinstance(items, list) and items:
                return items.pop(0)
        return None

    def rpop(self, key: str) -> Optional[str]:
        with self.lock:
            items = self.data.get(key)
            if isinstance(items, list) and items:
                return items.pop()
        return None

    def lrange(self, key: str, start: int, end: int) -> list[str]:
        """Items from ``start`` up to but excluding ``end``, clamped to the list."""
        if start < 0 or end < 0:
            raise ValueError("range bounds must be non-negative")
        with self.lock:
            items = self.data.get(key)
            if not isinstance(items, list):
                raise TypeMismatchError("Expected List")
            length = len(items)
            return items[min(start, length) : min(end, length)]

    def sadd(self, key: str, value: str) -> None:
        with self.lock:
            members = self.data.setdefault(key, set())
            if not isinstance(members, set):
                raise TypeMismatchError("Expected Set")
            members.add(value)

    def srem(self, key: str, value: str) -> None:
        with self.lock:
            members = self.data.get(key)
            if not isinstance(members, set):
                raise TypeMismatchError("Expected Set")
            members.discard(value)

    def smembers(self, key: str) -> set[str]:
        with self.lock:
            members = self.data.get(key)
            if not isinstance(members, set):
                raise TypeMismatchError("Expected Set")
            return set(members)

    def get(self, key: str) -> Optional[Value]:
        if self.expiration_table is not None and self.expiration_table.is_expired(key):
            return None
        with self.lock:
            return copy.copy(self.data.get(key))

    def set(self, key: str, value: Value) -> None:
        with self.lock:
            self.data[key] = value

    def delete(self, key: str) -> None:
        with self.lock:
            self.data.pop(key, None)

    def exists(self, key: str) -> bool:
        with self.lock:
            return key in self.data

    def keys(self) -> list[str]:
        with self.lock:
            return list(self.data)