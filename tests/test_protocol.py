import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from vapordb.protocol import ClientCommand, Response, send_request
from vapordb.values import Command, CommandKind


ALL_COMMANDS = [
    ClientCommand("get", "k"),
    ClientCommand("set", "k", value="v"),
    ClientCommand("del", "k"),
    ClientCommand("setwithexpiration", "k", value="v", ttl_secs=1),
    ClientCommand("hset", "h", field="f1", value="v1"),
    ClientCommand("hget", "h", field="f1"),
    ClientCommand("hdel", "h", field="f1"),
    ClientCommand("lpush", "mylist", value="a"),
    ClientCommand("rpush", "mylist", value="b"),
    ClientCommand("lpop", "mylist"),
    ClientCommand("rpop", "mylist"),
    ClientCommand("lrange", "list", start=0, end=1),
    ClientCommand("sadd", "myset", value="x"),
    ClientCommand("srem", "myset", value="x"),
    ClientCommand("smembers", "myset"),
]


@pytest.mark.parametrize("command", ALL_COMMANDS, ids=lambda c: c.cmd)
def test_dict_round_trip(command):
    assert ClientCommand.from_dict(command.to_dict()) == command


@pytest.mark.parametrize("command", ALL_COMMANDS, ids=lambda c: c.cmd)
def test_json_round_trip(command):
    wire = json.dumps(command.to_dict())
    assert ClientCommand.from_dict(json.loads(wire)) == command


def test_wire_form_of_expiring_set():
    command = ClientCommand("setwithexpiration", "k", value="v", ttl_secs=1)
    assert command.to_dict() == {
        "cmd": "setwithexpiration",
        "key": "k",
        "value": "v",
        "ttl_secs": 1,
    }


def test_wire_form_of_lrange():
    command = ClientCommand("lrange", "list", start=0, end=1)
    assert command.to_dict() == {"cmd": "lrange", "key": "list", "start": 0, "end": 1}


def test_extra_fields_are_ignored():
    data = {"cmd": "get", "key": "k", "unused": 1}
    assert ClientCommand.from_dict(data) == ClientCommand("get", "k")


@pytest.mark.parametrize(
    "data",
    [
        None,
        [],
        {"key": "k"},
        {"cmd": "nosuch", "key": "k"},
        {"cmd": "set", "key": "k"},
        {"cmd": "get", "key": 5},
        {"cmd": "lrange", "key": "l", "start": -1, "end": 2},
        {"cmd": "lrange", "key": "l", "start": True, "end": 2},
        {"cmd": "setwithexpiration", "key": "k", "value": "v", "ttl_secs": "1"},
    ],
)
def test_from_dict_rejects_invalid(data):
    with pytest.raises(ValueError):
        ClientCommand.from_dict(data)


def test_constructor_rejects_unexpected_field():
    with pytest.raises(ValueError):
        ClientCommand("get", "k", value="v")


def test_to_command_lrange():
    command = ClientCommand("lrange", "l", start=1, end=3)
    assert command.to_command() == Command(CommandKind.LRANGE, "l", start=1, end=3)


def test_to_command_hset():
    command = ClientCommand("hset", "h", field="f", value="v")
    assert command.to_command() == Command(CommandKind.HSET, "h", field="f", value="v")


def test_to_command_rejects_expiring_set():
    with pytest.raises(ValueError):
        ClientCommand("setwithexpiration", "k", value="v", ttl_secs=1).to_command()


def test_response_round_trip():
    response = Response(result="v", error=None)
    assert Response.from_dict(response.to_dict()) == response
    assert response.to_dict() == {"result": "v", "error": None}


def test_response_missing_fields_are_none():
    assert Response.from_dict({}) == Response()


@pytest.mark.parametrize("data", [None, "x", {"result": 3}, {"error": ["e"]}])
def test_response_rejects_invalid(data):
    with pytest.raises(ValueError):
        Response.from_dict(data)


@pytest.fixture
def fake_server():
    servers = []

    def start(status, body):
        received = []

        class Handler(BaseHTTPRequestHandler):
            def do_POST(self):
                length = int(self.headers["Content-Length"])
                received.append(json.loads(self.rfile.read(length)))
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, format, *args):
                pass

        server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        threading.Thread(target=server.serve_forever, daemon=True).start()
        servers.append(server)
        host, port = server.server_address[:2]
        return f"http://{host}:{port}/cmd", received

    yield start
    for server in servers:
        server.shutdown()
        server.server_close()


def test_send_request_success(fake_server):
    url, received = fake_server(200, b'{"result":"v","error":null}')
    command = ClientCommand("get", "k")
    assert send_request(command, url) == Response(result="v")
    assert received == [command.to_dict()]


def test_send_request_error_status_body_is_parsed(fake_server):
    url, _ = fake_server(500, b'{"result":null,"error":"Unknown error"}')
    response = send_request(ClientCommand("get", "k"), url)
    assert response == Response(error="Unknown error")


def test_send_request_bad_body(fake_server):
    url, _ = fake_server(200, b"not json")
    response = send_request(ClientCommand("get", "k"), url)
    assert response.result is None
    assert response.error.startswith("Failed to parse response")


def test_send_request_unreachable():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    response = send_request(ClientCommand("get", "k"), f"http://127.0.0.1:{port}/cmd")
    assert response.result is None
    assert response.error.startswith("Request failed")