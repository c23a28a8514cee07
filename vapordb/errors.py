"""Exception hierarchy raised by the storage engine."""

from __future__ import annotations


class VaporDBError(Exception):
    """Base class for every error raised by the database."""

    prefix = "VaporDB error"

    def __init__(self, detail: object = "") -> None:
        self.detail = str(detail)
        message = f"{self.prefix}: {self.detail}" if self.detail else self.prefix
        super().__init__(message)


class KeyNotFoundError(VaporDBError):
    """A requested key does not exist."""

    prefix = "Key not found"


class InternalError(VaporDBError):
    """An unexpected internal failure, such as a corrupt log record."""

    prefix = "Internal error"


class StorageIOError(VaporDBError):
    """Reading or writing a file on disk failed."""

    prefix = "I/O error"


class SerializationError(VaporDBError):
    """A value could not be encoded or decoded."""

    prefix = "Serialization/Deserialization error"


class TypeMismatchError(VaporDBError):
    """A key holds a value of a different type than the operation expects."""

    prefix = "Type mismatch error"


class CompactionFailedError(VaporDBError):
    """Merging sorted tables on disk failed."""

    prefix = "Compaction error"