"""A key-value store with a write-ahead log, SSTables, TTLs, an HTTP server and a client."""

__version__ = "0.1.0"