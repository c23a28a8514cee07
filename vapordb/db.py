"""The database engine: memtable, write-ahead log, tables on disk and expiry."""

from __future__ import annotations

import copy
import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional

from vapordb.errors import CompactionFailedError, StorageIOError, TypeMismatchError, VaporDBError
from vapordb.memtable import MemTable
from vapordb.sstable import SSTable, compact as compact_tables
from vapordb.ttl import ExpirationTable
from vapordb.values import Command, CommandKind, Value, value_to_json, value_type_name
from vapordb.wal import LogEntry, LogOp, WriteAheadLog

log = logging.getLogger(__name__)


def _to_json(data: Any) -> str:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def _mismatch(expected: str, found: Value) -> TypeMismatchError:
    return TypeMismatchError(f"Expected {expected}, found {value_type_name(found)}")


class VaporDB:
    """A persistent store of strings, hashes, lists and sets.

    Opening replays the write-ahead log and loads every ``*.sst`` file in
    ``sst_dir``. All public operations are serialised by an internal lock.
    """

    def __init__(
        self,
        wal_path="vapordb.wal",
        sst_dir="sstables",
        flush_threshold: int = 1000,
    ) -> None:
        self._lock = threading.RLock()
        self._stops: list[threading.Event] = []
        self.storage = MemTable()
        self.ttl = ExpirationTable()
        self.wal = WriteAheadLog(wal_path)
        self.sst_dir = Path(sst_dir)
        self.flush_threshold = flush_threshold

        try:
            self.sst_dir.mkdir(parents=True, exist_ok=True)
            paths = sorted(p for p in self.sst_dir.iterdir() if p.suffix == ".sst")
        except OSError as exc:
            self.wal.close()
            raise StorageIOError(exc) from exc
        self.sstables: list[SSTable] = [SSTable.load(path) for path in paths]

        for entry in self.wal.load_entries():
            if entry.op is LogOp.SET:
                self.storage.set(entry.key, entry.value)
            else:
                self.storage.delete(entry.key)

        self._handlers: dict[CommandKind, Callable[[Command], Optional[str]]] = {
            CommandKind.GET: self._get,
            CommandKind.SET: self._set,
            CommandKind.DEL: self._del,
            CommandKind.HSET: self._hset,
            CommandKind.HGET: self._hget,
            CommandKind.HDEL: self._hdel,
            CommandKind.LPUSH: self._lpush,
            CommandKind.RPUSH: self._rpush,
            CommandKind.LPOP: self._lpop,
            CommandKind.RPOP: self._rpop,
            CommandKind.LRANGE: self._lrange,
            CommandKind.SADD: self._sadd,
            CommandKind.SREM: self._srem,
            CommandKind.SMEMBERS: self._smembers,
        }

    def memtable(self) -> MemTable:
        return self.storage

    def expiration_table(self) -> ExpirationTable:
        return self.ttl

    def sstable(self) -> Optional[SSTable]:
        """A copy of the first loaded table, if any."""
        with self._lock:
            return copy.deepcopy(self.sstables[0]) if self.sstables else None

    def _spawn(self, interval: float, work: Callable[[], None], name: str) -> threading.Event:
        stop = threading.Event()

        def run() -> None:
            while not stop.wait(interval):
                with self._lock:
                    work()

        self._stops.append(stop)
        threading.Thread(target=run, name=name, daemon=True).start()
        return stop

    def start_ttl_daemon(self, interval: float = 1.0) -> threading.Event:
        """Clean expired keys every ``interval`` seconds; set the event to stop."""
        return self._spawn(interval, self.clean_expired_keys, "vapordb_ttl")

    def clean_expired_keys(self) -> None:
        for key in self.ttl.expired_keys():
            self.storage.delete(key)
            self.ttl.remove(key)

    def compact(self) -> bool:
        """Merge the two smallest tables into one; return whether anything merged."""
        with self._lock:
            self.sstables.sort(key=SSTable.size)
            if len(self.sstables) < 2:
                return False
            first, second = self.sstables[0], self.sstables[1]
            path = self.sst_dir / f"compact_{int(time.time())}.sst"
            try:
                compact_tables(first, second, path)
            except VaporDBError as exc:
                raise CompactionFailedError(exc) from exc
            log.info("Compaction successful!")
            del self.sstables[:2]
            self.sstables.append(SSTable.load(path))
            return True

    def start_background_compaction(self, interval: float = 60.0) -> threading.Event:
        """Compact every ``interval`` seconds on a daemon thread."""

        def work() -> None:
            try:
                self.compact()
            except VaporDBError as exc:
                log.error("Compaction failed: %s", exc)

        return self._spawn(interval, work, "vapordb_compaction")

    def execute(self, command: Command) -> Optional[str]:
        with self._lock:
            return self._handlers[command.kind](command)

    def set_with_expiration(self, key: str, value: str, ttl_secs: int) -> None:
        with self._lock:
            self.execute(Command(CommandKind.SET, key, value=value))
            self.ttl.set(key, ttl_secs)

    def close(self) -> None:
        for stop in self._stops:
            stop.set()
        self._stops.clear()
        self.wal.close()

    def __enter__(self) -> "VaporDB":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # String commands

    def _get(self, cmd: Command) -> Optional[str]:
        key = cmd.key
        if self.ttl.is_expired(key):
            self.storage.delete(key)
            self.ttl.remove(key)
            return None
        value = self.storage.get(key)
        if value is not None:
            return value if isinstance(value, str) else None
        for table in self.sstables:
            found = table.get(key)
            if isinstance(found, str):
                return found
        return None

    def _set(self, cmd: Command) -> None:
        self.wal.append(LogEntry(LogOp.SET, cmd.key, cmd.value))
        self.storage.set(cmd.key, cmd.value)
        if len(self.storage) >= self.flush_threshold:
            path = self.sst_dir / f"{int(time.time())}.sst"
            self.storage.flush_to_sstable(path)
            self.sstables.append(SSTable.load(path))
            self.storage.clear()
        return None

    def _del(self, cmd: Command) -> None:
        self.wal.append(LogEntry(LogOp.DEL, cmd.key))
        self.storage.delete(cmd.key)
        self.ttl.remove(cmd.key)
        return None

    # Hash commands

    def _store_hash(self, key: str, mapping: dict[str, str]) -> None:
        self.storage.set(key, dict(mapping))
        self.wal.append(LogEntry(LogOp.SET, key, _to_json(value_to_json(mapping))))

    def _hset(self, cmd: Command) -> None:
        current = self.storage.get(cmd.key)
        mapping = current if isinstance(current, dict) else {}
        mapping[cmd.field] = cmd.value
        self._store_hash(cmd.key, mapping)
        return None

    def _hget(self, cmd: Command) -> Optional[str]:
        current = self.storage.get(cmd.key)
        if current is None:
            return None
        if not isinstance(current, dict):
            raise _mismatch("hash", current)
        return current.get(cmd.field)

    def _hdel(self, cmd: Command) -> None:
        current = self.storage.get(cmd.key)
        if current is None:
            return None
        if not isinstance(current, dict):
            raise _mismatch("hash", current)
        current.pop(cmd.field, None)
        if current:
            self._store_hash(cmd.key, current)
        else:
            self.storage.delete(cmd.key)
            self.wal.append(LogEntry(LogOp.DEL, cmd.key))
        return None

    # List commands

    def _current_list(self, key: str) -> list[str]:
        current = self.storage.get(key)
        return current if isinstance(current, list) else []

    def _lpush(self, cmd: Command) -> None:
        items = self._current_list(cmd.key)
        items.insert(0, cmd.value)
        self.storage.set(cmd.key, items)
        return None

    def _rpush(self, cmd: Command) -> None:
        items = self._current_list(cmd.key)
        items.append(cmd.value)
        self.storage.set(cmd.key, items)
        return None

    def _pop(self, key: str, from_left: bool) -> Optional[str]:
        current = self.storage.get(key)
        if current is None:
            return None
        if not isinstance(current, list):
            raise _mismatch("list", current)
        if not current:
            return None
        value = current.pop(0) if from_left else current.pop()
        if current:
            self.storage.set(key, current)
        else:
            self.storage.delete(key)
        return value

    def _lpop(self, cmd: Command) -> Optional[str]:
        return self._pop(cmd.key, from_left=True)

    def _rpop(self, cmd: Command) -> Optional[str]:
        return self._pop(cmd.key, from_left=False)

    def _lrange(self, cmd: Command) -> str:
        current = self.storage.get(cmd.key)
        if current is None:
            return "[]"
        if not isinstance(current, list):
            raise _mismatch("list", current)
        if not current:
            return "[]"
        last = min(cmd.end, len(current) - 1)
        if cmd.start > last or cmd.start >= len(current):
            return "[]"
        return _to_json(current[cmd.start : last + 1])

    # Set commands

    def _sadd(self, cmd: Command) -> None:
        current = self.storage.get(cmd.key)
        members = set(current) if isinstance(current, set) else set()
        members.add(cmd.value)
        self.storage.set(cmd.key, members)
        return None

    def _srem(self, cmd: Command) -> None:
        current = self.storage.get(cmd.key)
        if current is None:
            return None
        if not isinstance(current, set):
            raise _mismatch("set", current)
        members = set(current)
        members.discard(cmd.value)
        if members:
            self.storage.set(cmd.key, members)
        else:
            self.storage.delete(cmd.key)
        return None

    def _smembers(self, cmd: Command) -> Optional[str]:
        current = self.storage.get(cmd.key)
        if current is None:
            return None
        if not isinstance(current, set):
            raise _mismatch("set", current)
        return _to_json(sorted(current))