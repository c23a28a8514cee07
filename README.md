# vapordb

A small key-value database. It stores four kinds of value under string keys:

- **strings**: `set`, `get`, `del`, and expiring sets with a TTL in seconds
- **hashes**: `h-set`, `h-get`, `h-del`
- **lists**: `l-push`, `r-push`, `l-pop`, `r-pop`, `l-range`
- **sets**: `s-add`, `s-rem`, `s-members`

String and hash writes are appended to a write-ahead log, which is replayed
when the database is opened. Once the in-memory table holds `flush_threshold`
keys (1000 by default), it is flushed to a file in the `sstables/` directory
and cleared. Keys given a TTL are removed once it has passed.

It needs nothing outside the standard library.

## Installing

```
pip install .
```

## Running the server

```
vapordb-server
```

Options:

- `--wal PATH`: write-ahead log file (default `vapordb.wal`)
- `--host HOST`: address to bind (default `127.0.0.1`)
- `--port PORT`: port to bind (default `3030`)
- `--no-ttl-daemon`: do not run the background sweeper of expired keys

The server takes JSON commands as `POST` requests to `/cmd`. A database error
is answered with status 500 and `"VaporDB error: ..."`; a malformed request,
another path or another method with status 500 and `"Unknown error"`.
Browser requests are accepted only from the origin `http://localhost:5173`;
requests from other origins get status 403.

## Using the command-line client

With the server running:

```
vapordb set greeting hello
vapordb get greeting
vapordb set-expiring session abc --ttl 10
vapordb h-set user:1 name Ada
vapordb h-get user:1 name
vapordb r-push queue job1
vapordb l-range queue 0 10
vapordb s-add tags red
vapordb s-members tags
```

Each hyphenated command also has an alias without the hyphen (`hset`, `lpush`,
`setexpiring`, ...). `--url` points the client at another endpoint (default
`http://127.0.0.1:3030/cmd`). A result is printed to standard output; an error
is printed to standard error and the exit status is 1.

`vapordb start` runs a server in the foreground on `127.0.0.1:3030` with the log
`vapordb.wal`. That server has no sweeper thread, accepts any origin, answers
database errors with an empty result, and answers malformed requests with
status 400.

## Using the library

```python
from vapordb.db import VaporDB
from vapordb.values import Command, CommandKind

with VaporDB("vapordb.wal") as db:
    db.execute(Command(CommandKind.SET, "k", value="v"))
    print(db.execute(Command(CommandKind.GET, "k")))              # v

    db.execute(Command(CommandKind.RPUSH, "q", value="a"))
    print(db.execute(Command(CommandKind.LRANGE, "q", start=0, end=10)))  # ["a"]

    db.set_with_expiration("temp", "bye", 1)
    stop = db.start_ttl_daemon(1.0)   # set the returned event to stop it
```

`VaporDB(wal_path, sst_dir="sstables", flush_threshold=1000)` opens a database.
`execute` returns a string or `None`: `l-range` and `s-members` return JSON
arrays as strings (set members sorted), and an `l-range` end past the list is
clamped to its last item. `compact()` merges the two smallest tables on disk
into one `compact_<timestamp>.sst` file; `start_background_compaction(interval)`
does so periodically.

A command that meets a key holding the wrong kind of value raises
`vapordb.errors.TypeMismatchError`. Every error the engine raises derives from
`vapordb.errors.VaporDBError`; a `Command` built without the field or value its
kind needs raises `ValueError`.

Lower-level pieces are usable on their own: `vapordb.memtable.MemTable`,
`vapordb.sstable.SSTable` (with `write_sstable`, `merge_sstables`, `compact`),
`vapordb.wal.WriteAheadLog`, `vapordb.ttl.ExpirationTable`, and
`vapordb.ttl_daemon.sweep_expired` / `start_ttl_daemon`.

## Wire format

Each request is a JSON object tagged by `cmd`, for example
`{"cmd": "set", "key": "k", "value": "v"}`. The tags are `get`, `set`, `del`,
`setwithexpiration` (with `ttl_secs`), `hset`, `hget`, `hdel`, `lpush`,
`rpush`, `lpop`, `rpop`, `lrange` (with `start` and `end`), `sadd`, `srem`
and `smembers`. Each reply has the form `{"result": ..., "error": ...}`.
`vapordb.protocol` holds `ClientCommand`, `Response` and `send_request`.

## Limitations

- Only string and hash writes are logged; lists, sets and TTLs are lost when
  the process stops. A hash replayed from the log comes back as a string
  holding its JSON text.
- A memtable flush writes `key<TAB>json` lines, which `SSTable.load` skips as
  malformed, so flushed keys are not read back from disk. Only tables in the
  JSON-lines entry format (as written by `write_sstable`) are loaded.
- Reads fall back to tables on disk for strings only.
- There is no authentication and no TLS.

## Running the tests

```
pip install .[test]
pytest
```