"""Stored value types, their JSON form, and the command model."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

from vapordb.errors import SerializationError

Value = Union[str, dict[str, str], list[str], set[str]]


def value_type_name(value: Any) -> str:
    """Return the short type name of a stored value."""
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "hash"
    if isinstance(value, list):
        return "list"
    if isinstance(value, (set, frozenset)):
        return "set"
    raise TypeError(f"unsupported value type: {type(value).__name__}")


def value_to_json(value: Value) -> dict[str, Any]:
    """Encode a value as a tagged JSON-compatible object."""
    kind = value_type_name(value)
    if kind == "string":
        return {"String": value}
    if kind == "hash":
        return {"Hash": dict(value)}
    if kind == "list":
        return {"List": list(value)}
    return {"Set": sorted(value)}


def _check_strings(items: Any, what: str) -> None:
    if not all(isinstance(item, str) for item in items):
        raise SerializationError(f"{what} must contain only strings")


def value_from_json(data: Any) -> Value:
    """Decode a tagged JSON object back into a value."""
    if not isinstance(data, dict) or len(data) != 1:
        raise SerializationError("expected an object with exactly one variant tag")
    ((tag, payload),) = data.items()
    if tag == "String":
        if not isinstance(payload, str):
            raise SerializationError("String payload must be a string")
        return payload
    if tag == "Hash":
        if not isinstance(payload, dict):
            raise SerializationError("Hash payload must be an object")
        _check_strings(payload.values(), "Hash")
        return dict(payload)
    if tag in ("List", "Set"):
        if not isinstance(payload, list):
            raise SerializationError(f"{tag} payload must be an array")
        _check_strings(payload, tag)
        return list(payload) if tag == "List" else set(payload)
    raise SerializationError(f"unknown variant {tag!r}")


class Storage(Protocol):
    """Interface of a key/value store holding typed values."""

    def get(self, key: str) -> Optional[Value]: ...

    def set(self, key: str, value: Value) -> None: ...

    def delete(self, key: str) -> None: ...

    def exists(self, key: str) -> bool: ...

    def keys(self) -> list[str]: ...


class CommandKind(enum.Enum):
    GET = "get"
    SET = "set"
    DEL = "del"
    HSET = "hset"
    HGET = "hget"
    HDEL = "hdel"
    LPUSH = "lpush"
    RPUSH = "rpush"
    LPOP = "lpop"
    RPOP = "rpop"
    LRANGE = "lrange"
    SADD = "sadd"
    SREM = "srem"
    SMEMBERS = "smembers"


_FIELD_KINDS = frozenset({CommandKind.HSET, CommandKind.HGET, CommandKind.HDEL})
_VALUE_KINDS = frozenset(
    {
        CommandKind.SET,
        CommandKind.HSET,
        CommandKind.LPUSH,
        CommandKind.RPUSH,
        CommandKind.SADD,
        CommandKind.SREM,
    }
)


@dataclass(frozen=True)
class Command:
    """One operation against the database."""

    kind: CommandKind
    key: str
    field: Optional[str] = None
    value: Optional[str] = None
    start: int = 0
    end: int = 0

    def __post_init__(self) -> None:
        if self.kind in _FIELD_KINDS and self.field is None:
            raise ValueError(f"{self.kind.value} requires a field")
        if self.kind in _VALUE_KINDS and self.value is None:
            raise ValueError(f"{self.kind.value} requires a value")
        if self.kind is CommandKind.LRANGE and (self.start < 0 or self.end < 0):
            raise ValueError("lrange bounds must be non-negative")