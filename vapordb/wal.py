"""Append-only write-ahead log of length-prefixed binary records."""

from __future__ import annotations

import enum
import struct
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from vapordb.errors import InternalError

_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


class LogOp(enum.Enum):
    SET = 0
    DEL = 1


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def take(self, count: int) -> bytes:
        end = self._pos + count
        if end > len(self._data):
            raise InternalError("unexpected end of record")
        chunk = self._data[self._pos : end]
        self._pos = end
        return chunk

    def string(self) -> str:
        (length,) = _U64.unpack(self.take(_U64.size))
        try:
            return self.take(length).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InternalError(exc) from exc


def _pack_string(text: str) -> bytes:
    raw = text.encode("utf-8")
    return _U64.pack(len(raw)) + raw


@dataclass(frozen=True)
class LogEntry:
    """A single logged mutation: a string set or a key deletion."""

    op: LogOp
    key: str
    value: Optional[str] = None

    def __post_init__(self) -> None:
        if self.op is LogOp.SET and self.value is None:
            raise ValueError("a SET entry requires a value")
        if self.op is LogOp.DEL and self.value is not None:
            raise ValueError("a DEL entry takes no value")

    def encode(self) -> bytes:
        """Binary form: u32 variant tag, then u64-length-prefixed UTF-8 strings."""
        body = _U32.pack(self.op.value) + _pack_string(self.key)
        if self.op is LogOp.SET:
            body += _pack_string(self.value)
        return body

    @classmethod
    def decode(cls, data: bytes) -> "LogEntry":
        reader = _Reader(data)
        (tag,) = _U32.unpack(reader.take(_U32.size))
        try:
            op = LogOp(tag)
        except ValueError as exc:
            raise InternalError(f"unknown log entry variant {tag}") from exc
        key = reader.string()
        value = reader.string() if op is LogOp.SET else None
        return cls(op, key, value)


class WriteAheadLog:
    """A log file opened for appending; every record is flushed on write."""

    def __init__(self, path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        try:
            self._file = open(self.path, "ab")
        except OSError as exc:
            raise InternalError(exc) from exc

    def append(self, entry: LogEntry) -> None:
        encoded = entry.encode()
        with self._lock:
            try:
                self._file.write(_U32.pack(len(encoded)))
                self._file.write(encoded)
                self._file.flush()
            except (OSError, ValueError) as exc:
                raise InternalError(exc) from exc

    def load_entries(self) -> list[LogEntry]:
        """Read every complete record; a trailing partial length is ignored."""
        entries = []
        try:
            with open(self.path, "rb") as handle:
                while True:
                    header = handle.read(_U32.size)
                    if len(header) < _U32.size:
                        break
                    (length,) = _U32.unpack(header)
                    data = handle.read(length)
                    if len(data) < length:
                        raise InternalError("truncated log record")
                    entries.append(LogEntry.decode(data))
        except OSError as exc:
            raise InternalError(exc) from exc
        return entries

    def close(self) -> None:
        with self._lock:
            self._file.close()

    def __enter__(self) -> "WriteAheadLog":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()