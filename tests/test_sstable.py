import pytest

from vapordb.errors import StorageIOError
from vapordb.sstable import SSTable, compact, merge_sstables, write_sstable
from vapordb.ttl import current_timestamp


def future():
    return current_timestamp() + 3600


def test_write_load_round_trip(tmp_path):
    path = tmp_path / "t.sst"
    entries = {"s": "v", "h": {"f": "x"}, "l": ["a", "b"], "m": {"p", "q"}}
    expiry = future()
    write_sstable(path, entries, {"s": expiry})
    loaded = SSTable.load(path)
    assert loaded.entries == entries
    assert loaded.ttls == {"s": expiry}


def test_line_format(tmp_path):
    path = tmp_path / "t.sst"
    write_sstable(path, {"k": "v"}, {})
    assert path.read_text(encoding="utf-8") == '{"key":"k","value":{"String":"v"},"ttl":null}\n'


def test_write_skips_expired(tmp_path):
    path = tmp_path / "t.sst"
    write_sstable(path, {"old": "x", "new": "y"}, {"old": 0})
    assert SSTable.load(path).entries == {"new": "y"}


def test_load_skips_malformed_and_expired_lines(tmp_path):
    path = tmp_path / "t.sst"
    path.write_text(
        "not json\n"
        '{"key":"gone","value":{"String":"x"},"ttl":1}\n'
        '{"value":{"String":"x"}}\n'
        "\n"
        '{"key":"ok","value":{"List":["a"]}}\n',
        encoding="utf-8",
    )
    loaded = SSTable.load(path)
    assert loaded.entries == {"ok": ["a"]}
    assert loaded.ttls == {}


def test_tombstone_survives_round_trip(tmp_path):
    path = tmp_path / "t.sst"
    write_sstable(path, {"dead": None, "alive": "v"}, {})
    loaded = SSTable.load(path)
    assert loaded.get("dead") is None
    assert loaded.get("alive") == "v"
    assert loaded.size() == 2
    assert "dead" in loaded.entries


def test_load_missing_file(tmp_path):
    with pytest.raises(StorageIOError):
        SSTable.load(tmp_path / "absent.sst")


def test_insert_and_ttl_handling():
    table = SSTable()
    expiry = future()
    table.insert("k", "v", expiry)
    assert table.ttls["k"] == expiry
    table.insert("k", "w")
    assert "k" not in table.ttls
    assert table.get("k") == "w"


def test_get_respects_expired_ttl():
    table = SSTable()
    table.insert("k", "v", 1)
    assert table.get("k") is None


def test_delete_marks_tombstone():
    table = SSTable()
    table.insert("k", "v", future())
    table.delete("k")
    assert table.entries == {"k": None}
    assert table.ttls == {}
    assert len(table) == 1


def test_get_returns_copy():
    table = SSTable()
    table.insert("l", ["a"])
    table.get("l").append("b")
    assert table.get("l") == ["a"]


def test_merge_later_wins():
    first = SSTable()
    first.insert("a", "1")
    first.insert("b", "1")
    second = SSTable()
    second.insert("b", "2", future())
    merged = merge_sstables([first, second])
    assert merged.entries == {"a": "1", "b": "2"}
    assert set(merged.ttls) == {"b"}


def test_compact_writes_merged(tmp_path):
    first = SSTable()
    first.insert("a", "1")
    second = SSTable()
    second.insert("a", "2")
    second.insert("c", ["x"])
    out = tmp_path / "compact.sst"
    compact(first, second, out)
    assert SSTable.load(out).entries == {"a": "2", "c": ["x"]}