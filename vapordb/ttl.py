"""Per-key expiration times."""

from __future__ import annotations

import threading
import time


def current_timestamp() -> int:
    """Seconds since the Unix epoch."""
    return int(time.time())


class ExpirationTable:
    """Thread-safe map from key to the epoch second at which it expires."""

    def __init__(self) -> None:
        self.expirations: dict[str, int] = {}
        self.lock = threading.RLock()

    def set(self, key: str, ttl_secs: int) -> None:
        """Expire ``key`` ``ttl_secs`` seconds from now."""
        expire_at = current_timestamp() + int(ttl_secs)
        with self.lock:
            self.expirations[key] = expire_at

    def is_expired(self, key: str) -> bool:
        with self.lock:
            expire_at = self.expirations.get(key)
        return expire_at is not None and current_timestamp() >= expire_at

    def expired_keys(self) -> list[str]:
        now = current_timestamp()
        with self.lock:
            return [key for key, expire_at in self.expirations.items() if now >= expire_at]

    def remove(self, key: str) -> None:
        with self.lock:
            self.expirations.pop(key, None)

    def __contains__(self, key: object) -> bool:
        with self.lock:
            return key in self.expirations

    def __len__(self) -> int:
        with self.lock:
            return len(self.expirations)