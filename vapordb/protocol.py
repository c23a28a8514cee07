"""JSON wire format shared by the HTTP server and its command-line client."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Optional

from vapordb.values import Command, CommandKind

DEFAULT_URL = "http://127.0.0.1:3030/cmd"

_INT_FIELDS = frozenset({"ttl_secs", "start", "end"})
_ALL_FIELDS = ("key", "field", "value", "ttl_secs", "start", "end")

_SHAPES: dict[str, tuple[str, ...]] = {
    "get": ("key",),
    "set": ("key", "value"),
    "del": ("key",),
    "setwithexpiration": ("key", "value", "ttl_secs"),
    "hset": ("key", "field", "value"),
    "hget": ("key", "field"),
    "hdel": ("key", "field"),
    "lpush": ("key", "value"),
    "rpush": ("key", "value"),
    "lpop": ("key",),
    "rpop": ("key",),
    "lrange": ("key", "start", "end"),
    "sadd": ("key", "value"),
    "srem": ("key", "value"),
    "smembers": ("key",),
}


def _check_field(name: str, value: Any) -> None:
    if name in _INT_FIELDS:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"field {name!r} must be a non-negative integer")
    elif not isinstance(value, str):
        raise ValueError(f"field {name!r} must be a string")


@dataclass(frozen=True)
class ClientCommand:
    """A request as sent over the wire, tagged by its ``cmd`` name."""

    cmd: str
    key: str
    field: Optional[str] = None
    value: Optional[str] = None
    ttl_secs: Optional[int] = None
    start: Optional[int] = None
    end: Optional[int] = None

    def __post_init__(self) -> None:
        shape = _SHAPES.get(self.cmd)
        if shape is None:
            raise ValueError(f"unknown command {self.cmd!r}")
        for name in _ALL_FIELDS:
            current = getattr(self, name)
            if name in shape:
                if current is None:
                    raise ValueError(f"{self.cmd} requires {name!r}")
                _check_field(name, current)
            elif current is not None:
                raise ValueError(f"{self.cmd} takes no {name!r}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"cmd": self.cmd}
        data.update((name, getattr(self, name)) for name in _SHAPES[self.cmd])
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "ClientCommand":
        """Build a command from decoded JSON; unknown extra fields are ignored."""
        if not isinstance(data, dict):
            raise ValueError("command must be a JSON object")
        tag = data.get("cmd")
        if not isinstance(tag, str):
            raise ValueError("missing string field 'cmd'")
        shape = _SHAPES.get(tag)
        if shape is None:
            raise ValueError(f"unknown variant {tag!r}")
        for name in shape:
            if name not in data:
                raise ValueError(f"missing field {name!r}")
        return cls(tag, **{name: data[name] for name in shape})

    def to_command(self) -> Command:
        """The engine command for this request; expiring sets have none."""
        if self.cmd == "setwithexpiration":
            raise ValueError("setwithexpiration has no single engine command")
        return Command(
            CommandKind(self.cmd),
            self.key,
            field=self.field,
            value=self.value,
            start=self.start if self.start is not None else 0,
            end=self.end if self.end is not None else 0,
        )


@dataclass(frozen=True)
class Response:
    """The server's answer: a result, an error, or neither."""

    result: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Optional[str]]:
        return {"result": self.result, "error": self.error}

    @classmethod
    def from_dict(cls, data: Any) -> "Response":
        if not isinstance(data, dict):
            raise ValueError("response must be a JSON object")
        result = data.get("result")
        error = data.get("error")
        for name, item in (("result", result), ("error", error)):
            if item is not None and not isinstance(item, str):
                raise ValueError(f"field {name!r} must be a string or null")
        return cls(result=result, error=error)


def send_request(command: ClientCommand, url: str = DEFAULT_URL) -> Response:
    """POST ``command`` to the server; failures come back as an error response."""
    body = json.dumps(command.to_dict()).encode("utf-8")
    request = urllib.request.Request(
        url, data=body, headers={"Content-Type": "application/json"}, method="POST"
    )
    try:
        with urllib.request.urlopen(request, timeout=30) as reply:
            raw = reply.read()
    except urllib.error.HTTPError as exc:
        try:
            raw = exc.read()
        except OSError as read_exc:
            return Response(error=f"Request failed: {read_exc}")
        finally:
            exc.close()
    except OSError as exc:
        return Response(error=f"Request failed: {exc}")

    try:
        return Response.from_dict(json.loads(raw))
    except ValueError as exc:
        return Response(error=f"Failed to parse response: {exc}")