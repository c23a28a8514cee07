import time

from vapordb.memtable import MemTable
from vapordb.sstable import SSTable
from vapordb.ttl import ExpirationTable
from vapordb.ttl_daemon import start_ttl_daemon, sweep_expired


def _tables():
    return ExpirationTable(), MemTable()


def test_sweep_with_nothing_expired_keeps_everything():
    expirations, memtable = _tables()
    memtable.set("a", "1")
    expirations.set("a", 100)
    assert sweep_expired(expirations, memtable) == []
    assert memtable.get("a") == "1"
    assert "a" in expirations


def test_sweep_removes_expired_keys_from_both_tables():
    expirations, memtable = _tables()
    memtable.set("gone", "x")
    memtable.set("stay", "y")
    expirations.set("gone", 0)
    expirations.set("stay", 100)
    assert sweep_expired(expirations, memtable) == ["gone"]
    assert memtable.exists("gone") is False
    assert memtable.get("stay") == "y"
    assert "gone" not in expirations
    assert "stay" in expirations


def test_sweep_without_table_writes_no_file(tmp_path):
    expirations, memtable = _tables()
    memtable.set("k", "v")
    expirations.set("k", 0)
    path = tmp_path / "out.json"
    sweep_expired(expirations, memtable, None, path)
    assert not path.exists()


def test_sweep_writes_memtable_and_tombstones(tmp_path):
    expirations, memtable = _tables()
    memtable.set("keep", "v")
    memtable.set("gone", "old")
    expirations.set("gone", 0)
    expirations.set("keep", 100)
    table = SSTable()
    table.insert("other", "o")
    table.delete("dead")
    path = tmp_path / "sst.json"

    removed = sweep_expired(expirations, memtable, table, path)

    assert removed == ["gone"]
    assert table.entries["gone"] is None
    loaded = SSTable.load(path)
    assert loaded.entries["keep"] == "v"
    assert loaded.entries["gone"] is None
    assert loaded.entries["dead"] is None
    assert "other" not in loaded.entries
    assert loaded.ttls["keep"] == expirations.expirations["keep"]


def test_sweep_survives_write_failure(tmp_path):
    expirations, memtable = _tables()
    memtable.set("k", "v")
    expirations.set("k", 0)
    bad_path = tmp_path / "missing" / "sst.json"
    assert sweep_expired(expirations, memtable, SSTable(), bad_path) == ["k"]
    assert memtable.exists("k") is False
    assert not bad_path.exists()


def test_daemon_thread_removes_expired_key(tmp_path):
    expirations, memtable = _tables()
    memtable.set("temp", "bye")
    expirations.set("temp", 0)
    stop = start_ttl_daemon(
        expirations, memtable, None, 0.05, False, tmp_path / "sst.json"
    )
    try:
        deadline = time.monotonic() + 2
        while memtable.exists("temp") and time.monotonic() < deadline:
            time.sleep(0.02)
        assert memtable.exists("temp") is False
        assert "temp" not in expirations
    finally:
        stop.set()