"""Background sweeper that drops expired keys from memory and disk."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from vapordb.errors import VaporDBError
from vapordb.memtable import MemTable
from vapordb.sstable import SSTable, write_sstable
from vapordb.ttl import ExpirationTable, current_timestamp
from vapordb.values import Value

log = logging.getLogger(__name__)

SSTABLE_PATH = "sstable.json"


def sweep_expired(
    expirations: ExpirationTable,
    memtable: MemTable,
    sstable: Optional[SSTable] = None,
    sstable_path=SSTABLE_PATH,
    logging: bool = False,
) -> list[str]:
    """Remove every expired key once and return the keys that were removed.

    When a table is given, the expired keys are marked with tombstones in it
    and the memtable contents plus all tombstones are written to
    ``sstable_path``. A failed write is logged, not raised.
    """
    now = current_timestamp()
    with expirations.lock:
        expired = [key for key, expire_at in expirations.expirations.items() if now >= expire_at]

    if not expired:
        if logging:
            log.info("[TTL] Checked for expired keys, none found.")
        return []

    with expirations.lock, memtable.lock:
        for key in expired:
            expirations.expirations.pop(key, None)
            memtable.data.pop(key, None)

        snapshot: dict[str, Optional[Value]] = dict(memtable.data)

        if sstable is not None:
            for key in expired:
                sstable.delete(key)
            snapshot.update(
                (key, None) for key, value in sstable.entries.items() if value is None
            )
            ttls = dict(expirations.expirations)
            try:
                write_sstable(sstable_path, snapshot, ttls)
            except VaporDBError as exc:
                log.error("[TTL] Failed to write SSTable: %s", exc)
        elif logging:
            log.info("[TTL] SSTable is None, skipping disk cleanup.")

    if logging:
        log.info("[TTL] Expired keys removed: %s", expired)
    return expired


def start_ttl_daemon(
    expirations: ExpirationTable,
    memtable: MemTable,
    sstable: Optional[SSTable] = None,
    interval: float = 0.1,
    logging: bool = False,
    sstable_path=SSTABLE_PATH,
) -> threading.Event:
    """Sweep every ``interval`` seconds on a daemon thread.

    Returns an event; setting it stops the thread.
    """
    stop = threading.Event()

    def run() -> None:
        while not stop.wait(interval):
            sweep_expired(expirations, memtable, sstable, sstable_path, logging)

    threading.Thread(target=run, name="ttl_daemon", daemon=True).start()
    return stop