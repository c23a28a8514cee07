import pytest

from vapordb.errors import (
    CompactionFailedError,
    InternalError,
    KeyNotFoundError,
    SerializationError,
    StorageIOError,
    TypeMismatchError,
    VaporDBError,
)


def test_key_not_found_message():
    assert str(KeyNotFoundError()) == "Key not found"


@pytest.mark.parametrize(
    "cls, prefix",
    [
        (InternalError, "Internal error"),
        (StorageIOError, "I/O error"),
        (SerializationError, "Serialization/Deserialization error"),
        (TypeMismatchError, "Type mismatch error"),
        (CompactionFailedError, "Compaction error"),
    ],
)
def test_messages_carry_prefix_and_detail(cls, prefix):
    err = cls("boom")
    assert str(err).startswith(prefix)
    assert str(err).endswith("boom")
    assert err.detail == "boom"


@pytest.mark.parametrize(
    "cls, prefix",
    [
        (InternalError, "Internal error"),
        (StorageIOError, "I/O error"),
        (SerializationError, "Serialization/Deserialization error"),
        (TypeMismatchError, "Type mismatch error"),
        (CompactionFailedError, "Compaction error"),
    ],
)
def test_all_errors_caught_by_base(cls, prefix):
    err = cls("detail")
    with pytest.raises(VaporDBError) as info:
        raise err
    assert info.value is err
    assert str(info.value).startswith(prefix)
    assert info.value.detail == "detail"


def test_key_not_found_caught_by_base():
    err = KeyNotFoundError()
    with pytest.raises(VaporDBError) as info:
        raise err
    assert info.value is err
    assert str(info.value) == "Key not found"


def test_specific_error_is_not_another_kind():
    err = TypeMismatchError("Expected List")
    assert isinstance(err, VaporDBError)
    assert not isinstance(err, StorageIOError)
    assert err.detail == "Expected List"
    assert str(err).startswith("Type mismatch error")
    assert str(err).endswith("Expected List")