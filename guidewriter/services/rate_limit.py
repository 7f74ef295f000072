"""Fixed-window request counting keyed by client (host, address, ...)."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Protocol


@dataclass(slots=True)
class WindowRecord:
    count: int
    reset_at: float


class CounterStore(Protocol):
    def get(self, key: str) -> WindowRecord | None: ...

    def set(self, key: str, record: WindowRecord) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class InMemoryCounterStore:
    """Process-local store; swap for a shared store when running several instances."""

    def __init__(self) -> None:
        self._records: dict[str, WindowRecord] = {}

    def get(self, key: str) -> WindowRecord | None:
        return self._records.get(key)

    def set(self, key: str, record: WindowRecord) -> None:
        self._records[key] = record

    def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def clear(self) -> None:
        self._records.clear()


class KeyedRateLimiter:
    def __init__(
        self,
        limit: int = 5,
        window_seconds: float = 60.0,
        *,
        store: CounterStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = max(int(limit), 1)
        self.window_seconds = max(float(window_seconds), 0.0)
        self.store = store if store is not None else InMemoryCounterStore()
        self._clock = clock

    def allow(self, key: str) -> bool:
        """Count one request for ``key``; False once the window's budget is spent."""
        now = self._clock()
        record = self.store.get(key)

        if record is None or now > record.reset_at:
            self.store.set(key, WindowRecord(count=1, reset_at=now + self.window_seconds))
            return True

        if record.count >= self.limit:
            return False

        record.count += 1
        self.store.set(key, record)
        return True

    def retry_after(self, key: str) -> float:
        """Seconds until ``key`` gets a fresh window (0 when a request is allowed now)."""
        record = self.store.get(key)
        if record is None or record.count < self.limit:
            return 0.0
        return max(record.reset_at - self._clock(), 0.0)

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self.store.clear()
        else:
            self.store.delete(key)
