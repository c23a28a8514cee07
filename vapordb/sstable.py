"""Sorted string tables: JSON-lines files of entries with optional expiry."""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from vapordb.errors import SerializationError, StorageIOError
from vapordb.ttl import current_timestamp
from vapordb.values import Value, value_from_json, value_to_json

log = logging.getLogger(__name__)


def _parse_entry(line: str) -> tuple[str, Optional[Value], Optional[int]]:
    try:
        data: Any = json.loads(line)
    except json.JSONDecodeError as exc:
        raise SerializationError(exc) from exc
    if not isinstance(data, dict):
        raise SerializationError("entry must be an object")
    key = data.get("key")
    if not isinstance(key, str):
        raise SerializationError("entry key must be a string")
    raw_value = data.get("value")
    value = None if raw_value is None else value_from_json(raw_value)
    ttl = data.get("ttl")
    if ttl is not None and (isinstance(ttl, bool) or not isinstance(ttl, int) or ttl < 0):
        raise SerializationError("entry ttl must be a non-negative integer")
    return key, value, ttl


def _encode_entry(key: str, value: Optional[Value], ttl: Optional[int]) -> str:
    entry = {
        "key": key,
        "value": None if value is None else value_to_json(value),
        "ttl": ttl,
    }
    return json.dumps(entry, separators=(",", ":"), ensure_ascii=False)


@dataclass
class SSTable:
    """An in-memory view of one table file; a ``None`` value is a tombstone."""

    entries: dict[str, Optional[Value]] = field(default_factory=dict)
    ttls: dict[str, int] = field(default_factory=dict)

    @classmethod
    def load(cls, path) -> "SSTable":
        """Read a table file, skipping malformed and already expired entries."""
        try:
            with open(path, encoding="utf-8") as handle:
                lines = handle.read().splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageIOError(exc) from exc

        table = cls()
        for line in lines:
            try:
                key, value, ttl = _parse_entry(line)
            except SerializationError as exc:
                log.warning("Skipping malformed line: %s", exc)
                continue
            if ttl is not None:
                if current_timestamp() >= ttl:
                    continue
                table.ttls[key] = ttl
            table.entries[key] = value
        return table

    def get(self, key: str) -> Optional[Value]:
        ttl = self.ttls.get(key)
        if ttl is not None and current_timestamp() >= ttl:
            return None
        return copy.copy(self.entries.get(key))

    def insert(self, key: str, value: Value, ttl: Optional[int] = None) -> None:
        self.entries[key] = value
        if ttl is None:
            self.ttls.pop(key, None)
        else:
            self.ttls[key] = ttl

    def delete(self, key: str) -> None:
        """Mark ``key`` with a tombstone."""
        self.entries[key] = None
        self.ttls.pop(key, None)

    def size(self) -> int:
        return len(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def write_sstable(
    path, entries: Mapping[str, Optional[Value]], ttls: Mapping[str, int]
) -> None:
    """Write entries as JSON lines, leaving out those already expired."""
    lines = []
    for key, value in entries.items():
        ttl = ttls.get(key)
        if ttl is not None and current_timestamp() >= ttl:
            continue
        lines.append(_encode_entry(key, value, ttl) + "\n")
    try:
        with open(path, "w", encoding="utf-8") as handle:
            handle.writelines(lines)
    except OSError as exc:
        raise StorageIOError(exc) from exc


def merge_sstables(tables: Iterable[SSTable]) -> SSTable:
    """Combine tables; later tables win on conflicting keys."""
    merged = SSTable()
    for table in tables:
        merged.entries.update(table.entries)
        merged.ttls.update(table.ttls)
    return merged


def compact(first: SSTable, second: SSTable, output_path) -> None:
    """Merge two tables and write the result to ``output_path``."""
    merged = merge_sstables([first, second])
    write_sstable(output_path, merged.entries, merged.ttls)