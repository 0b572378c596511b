"""Data structures shared by the chunked buffer and the chunk reaper."""

from __future__ import annotations

from dataclasses import dataclass
import os
import threading
from typing import Any, Callable, Dict, Hashable, Optional, TypeVar
from urllib.parse import quote

T = TypeVar("T")

# Suffix of chunk files that are still being written
TEMP_SUFFIX = ".part"


@dataclass(frozen=True)
class ChunkSettings:
    """
    Process-wide chunk configuration.

    It is created once during startup and shared by all buffers and the reaper, so that
    every component agrees on where chunk files live and which byte range each of them
    covers.
    """

    path: str
    chunk_size: int = 5 * 1024 * 1024

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"invalid chunk size {self.chunk_size}")

    def chunk_path(self, object_id: str, index: int) -> str:
        """Return the path of the file storing the specified chunk."""
        return os.path.join(self.path, f"{quote(object_id, safe='')}_{index}")


class _Flight:
    """A single in-flight operation and its outcome."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None


class FlightRegistry:
    """
    Registry of in-flight operations to collapse concurrent identical work.

    The first thread to run an operation for a key becomes its leader and executes it.
    Any thread that asks for the same key while the leader is busy waits for the
    leader's outcome instead of executing the operation again. Entries are removed as
    soon as the operation completes, so a later call for the same key starts a fresh
    operation.
    """

    def __init__(self) -> None:
        """Instantiate an empty FlightRegistry."""
        self._lock = threading.Lock()
        self._flights: Dict[Hashable, _Flight] = {}

    def run(self, key: Hashable, operation: Callable[[], T]) -> T:
        """Run the operation for the key, or wait for the one already in flight."""
        with self._lock:
            flight = self._flights.get(key)
            leader = flight is None

            if flight is None:
                flight = self._flights[key] = _Flight()

        if not leader:
            flight.done.wait()

            if flight.error is not None:
                raise flight.error

            return flight.result

        try:
            flight.result = operation()
            return flight.result
        except BaseException as e:
            flight.error = e
            raise
        finally:
            with self._lock:
                del self._flights[key]

            flight.done.set()

    @property
    def flight_count(self) -> int:
        """Return the number of operations currently in flight."""
        with self._lock:
            return len(self._flights)
