"""HTTP front end that executes JSON commands against a database."""

from __future__ import annotations

import argparse
import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import urlsplit

from vapordb.db import VaporDB
from vapordb.errors import VaporDBError
from vapordb.protocol import ClientCommand, Response
from vapordb.ttl_daemon import start_ttl_daemon

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3030
DEFAULT_ALLOWED_ORIGIN = "http://localhost:5173"

_QUERIES = frozenset({"get", "hget", "lpop", "rpop", "lrange", "smembers"})
_CORS_FORBIDDEN = "CORS request forbidden: origin not allowed"


def dispatch(db: VaporDB, payload: Any, strict: bool = True) -> tuple[int, Response]:
    """Run one decoded request and return the HTTP status and the response.

    In strict mode a database error becomes a 500 response carrying its
    message and a malformed request a 500 "Unknown error"; otherwise database
    errors are swallowed and malformed requests get a 400.
    """
    try:
        command = ClientCommand.from_dict(payload)
    except ValueError as exc:
        if strict:
            return 500, Response(error="Unknown error")
        return 400, Response(error=f"Request body deserialize error: {exc}")

    try:
        if command.cmd == "setwithexpiration":
            db.set_with_expiration(command.key, command.value, command.ttl_secs)
            result = None
        else:
            result = db.execute(command.to_command())
            if command.cmd not in _QUERIES:
                result = None
    except VaporDBError as exc:
        if strict:
            log.error("VaporDB error: %s", exc)
            return 500, Response(error=f"VaporDB error: {exc}")
        result = None
    return 200, Response(result=result)


class _VaporServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(
        self, address, db: VaporDB, allowed_origin: Optional[str], strict: bool
    ) -> None:
        self.db = db
        self.allowed_origin = allowed_origin
        self.strict = strict
        super().__init__(address, _Handler)


class _Handler(BaseHTTPRequestHandler):
    server: _VaporServer
    server_version = "VaporDB"

    def log_message(self, format, *args) -> None:
        log.debug("%s - %s", self.address_string(), format % args)

    def _origin_ok(self) -> bool:
        allowed = self.server.allowed_origin
        origin = self.headers.get("Origin")
        return allowed is None or origin is None or origin == allowed

    def _send(self, status: int, response: Response) -> None:
        body = json.dumps(response.to_dict()).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        origin = self.headers.get("Origin")
        if self.server.allowed_origin is not None and origin == self.server.allowed_origin:
            self.send_header("Access-Control-Allow-Origin", origin)
        self.end_headers()
        self.wfile.write(body)

    def _reject(self, status: int, message: str) -> None:
        if self.server.strict:
            self._send(500, Response(error="Unknown error"))
        else:
            self._send(status, Response(error=message))

    def _read_body(self) -> bytes:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
        return self.rfile.read(length) if length > 0 else b""

    def do_POST(self) -> None:
        if not self._origin_ok():
            self._send(403, Response(error=_CORS_FORBIDDEN))
            return
        if urlsplit(self.path).path != "/cmd":
            self._reject(404, "Not Found")
            return
        try:
            payload = json.loads(self._read_body())
        except ValueError:
            payload = None
        status, response = dispatch(self.server.db, payload, self.server.strict)
        self._send(status, response)

    def _method_not_allowed(self) -> None:
        if not self._origin_ok():
            self._send(403, Response(error=_CORS_FORBIDDEN))
            return
        self._reject(405, "HTTP method not allowed")

    do_GET = do_PUT = do_DELETE = do_PATCH = _method_not_allowed

    def do_OPTIONS(self) -> None:
        allowed = self.server.allowed_origin
        origin = self.headers.get("Origin")
        requested = self.headers.get("Access-Control-Request-Method")
        if allowed is None or origin is None or requested is None:
            self._method_not_allowed()
            return
        headers = {
            name.strip().lower()
            for name in (self.headers.get("Access-Control-Request-Headers") or "").split(",")
            if name.strip()
        }
        if origin != allowed or requested.upper() != "POST" or not headers <= {"content-type"}:
            self._send(403, Response(error=_CORS_FORBIDDEN))
            return
        self.send_response(200)
        self.send_header("Access-Control-Allow-Origin", origin)
        self.send_header("Access-Control-Allow-Methods", "POST")
        self.send_header("Access-Control-Allow-Headers", "content-type")
        self.send_header("Content-Length", "0")
        self.end_headers()


def make_server(
    db: VaporDB,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    allowed_origin: Optional[str] = None,
    strict: bool = True,
) -> ThreadingHTTPServer:
    """Bind an HTTP server answering ``POST /cmd``; the caller runs it."""
    return _VaporServer((host, port), db, allowed_origin, strict)


def run_server(
    wal_path="vapordb.wal",
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    with_ttl_daemon: bool = True,
) -> None:
    """Open the database and serve requests until interrupted."""
    with VaporDB(wal_path) as db:
        stop = None
        if with_ttl_daemon:
            stop = start_ttl_daemon(
                db.expiration_table(), db.memtable(), db.sstable(), 0.1, False
            )
        server = make_server(db, host, port, DEFAULT_ALLOWED_ORIGIN, True)
        print(f"VaporDB server running on http://{host}:{port}", flush=True)
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
        finally:
            server.server_close()
            if stop is not None:
                stop.set()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="vapordb-server", description="VaporDB server")
    parser.add_argument("--wal", default="vapordb.wal", help="write-ahead log path")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument(
        "--no-ttl-daemon", action="store_true", help="do not sweep expired keys"
    )
    args = parser.parse_args(argv)
    run_server(args.wal, args.host, args.port, not args.no_ttl_daemon)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())