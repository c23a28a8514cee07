"""Command-line client that sends commands to a running server."""

from __future__ import annotations

import argparse
import sys

from vapordb.db import VaporDB
from vapordb.protocol import DEFAULT_URL, ClientCommand, send_request
from vapordb.server import make_server

_START_HOST = "127.0.0.1"
_START_PORT = 3030

# (subcommand, alias, wire tag, positional fields)
_SPECS: tuple[tuple[str, str | None, str, tuple[str, ...]], ...] = (
    ("set", None, "set", ("key", "value")),
    ("get", None, "get", ("key",)),
    ("del", None, "del", ("key",)),
    ("h-set", "hset", "hset", ("key", "field", "value")),
    ("h-get", "hget", "hget", ("key", "field")),
    ("h-del", "hdel", "hdel", ("key", "field")),
    ("l-push", "lpush", "lpush", ("key", "value")),
    ("r-push", "rpush", "rpush", ("key", "value")),
    ("l-pop", "lpop", "lpop", ("key",)),
    ("r-pop", "rpop", "rpop", ("key",)),
    ("l-range", "lrange", "lrange", ("key", "start", "end")),
    ("s-add", "sadd", "sadd", ("key", "value")),
    ("s-rem", "srem", "srem", ("key", "value")),
    ("s-members", "smembers", "smembers", ("key",)),
)

_INT_ARGS = frozenset({"start", "end"})


def _non_negative(text: str) -> int:
    try:
        number = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {text!r}") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative: {text!r}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vapordb-cli", description="VaporDB CLI Client")
    parser.add_argument("--version", action="version", version="%(prog)s 0.1")
    parser.add_argument("--url", default=DEFAULT_URL, help="server command endpoint")
    commands = parser.add_subparsers(dest="command", required=True)

    for name, alias, tag, fields in _SPECS:
        sub = commands.add_parser(name, aliases=[alias] if alias else [])
        for field_name in fields:
            if field_name in _INT_ARGS:
                sub.add_argument(field_name, type=_non_negative)
            else:
                sub.add_argument(field_name)
        sub.set_defaults(tag=tag, fields=fields)

    expiring = commands.add_parser("set-expiring", aliases=["setexpiring"])
    expiring.add_argument("key")
    expiring.add_argument("value")
    expiring.add_argument("-t", "--ttl", type=_non_negative, required=True)
    expiring.set_defaults(tag="setwithexpiration", fields=("key", "value", "ttl"))

    start = commands.add_parser("start", help="run a server in the foreground")
    start.set_defaults(tag=None, fields=())
    return parser


def _start() -> None:
    with VaporDB("vapordb.wal") as db:
        server = make_server(db, _START_HOST, _START_PORT, None, False)
        print(f"VaporDB server running at http://{_START_HOST}:{_START_PORT}", flush=True)
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
        finally:
            server.server_close()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.tag is None:
        _start()
        return 0

    values = {name: getattr(args, name) for name in args.fields}
    if "ttl" in values:
        values["ttl_secs"] = values.pop("ttl")
    command = ClientCommand(args.tag, **values)

    response = send_request(command, args.url)
    if response.error is not None:
        print(response.error, file=sys.stderr)
        return 1
    if response.result is not None:
        print(response.result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())