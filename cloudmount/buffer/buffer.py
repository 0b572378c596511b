"""Module that serves random access reads of remote objects from cached chunks."""

from __future__ import annotations

import contextlib
import os
from typing import Callable, List
import uuid

from cloudmount.buffer.common import ChunkSettings, FlightRegistry, TEMP_SUFFIX
from cloudmount.errors import ChunkOutOfRange, TransportError
from cloudmount.interfaces import ContentHandle, ContentReader
from cloudmount.logger import log
from cloudmount.store import RemoteObject

# Downloads the bytes of a content reference from start to end (both inclusive).
RangeFetcher = Callable[[str, int, int], bytes]


class ChunkedBuffer(ContentHandle):
    """
    Reader of the contents of a single remote object.

    Contents are downloaded in fixed-size chunks on demand. A read at an arbitrary
    offset is answered by downloading only the chunks that overlap the requested range
    and concatenating the relevant parts of them. Each downloaded chunk is stored as a
    file in the chunk directory, so subsequent reads of the same range (from this or any
    other buffer of the same object) don't need the network anymore.

    Chunk files are written to a temporary name first and renamed into place once
    complete. A chunk file that exists is therefore always complete, which is the only
    synchronization needed with the reaper that periodically empties the directory.

    Concurrent downloads of the same chunk are collapsed into a single request through
    the flight registry that is shared between all buffers.
    """

    def __init__(
        self,
        obj: RemoteObject,
        settings: ChunkSettings,
        fetch: RangeFetcher,
        flights: FlightRegistry,
    ):
        """Instantiate a buffer for the given object."""
        self._object = obj
        self._settings = settings
        self._fetch = fetch
        self._flights = flights

    @property
    def object(self) -> RemoteObject:
        """Return the object whose contents are being read."""
        return self._object

    def read_at(self, offset: int, length: int) -> bytes:
        """
        Read up to length bytes starting at the given offset.

        Fewer bytes are returned if the range extends beyond the end of the object.
        """
        size = self._object.size

        if offset < 0 or offset >= size:
            raise ChunkOutOfRange(
                f"offset {offset} is out of range for {self._object.id} ({size} bytes)"
            )

        end = min(offset + max(length, 0), size)

        if end == offset:
            return b""

        chunk_size = self._settings.chunk_size

        parts: List[bytes] = []

        for index in range(offset // chunk_size, (end - 1) // chunk_size + 1):
            chunk_start = index * chunk_size

            part_start = max(offset, chunk_start) - chunk_start
            part_end = min(end, chunk_start + chunk_size) - chunk_start

            parts.append(self._read_chunk(index, part_start, part_end))

        return b"".join(parts)

    def _read_chunk(self, index: int, start: int, end: int) -> bytes:
        """Read a byte range of a chunk, downloading the chunk first if needed."""
        path = self._settings.chunk_path(self._object.id, index)

        while True:
            # Handle cases where the chunk file doesn't exist yet or has been reaped
            try:
                with open(path, "rb") as f:
                    f.seek(start)
                    return f.read(end - start)
            except FileNotFoundError:
                self._flights.run(
                    (self._object.id, index), lambda: self._download_chunk(index)
                )

    def _download_chunk(self, index: int) -> str:
        """Download a chunk and atomically store it in the chunk directory."""
        path = self._settings.chunk_path(self._object.id, index)

        # Another thread may have completed the download before this flight started
        if os.path.exists(path):
            return path

        chunk_size = self._settings.chunk_size

        start = index * chunk_size
        end = min(start + chunk_size, self._object.size) - 1

        log.debug(f"downloading chunk {index} of {self._object.id} ({start}-{end})")

        data = self._fetch(self._object.download_ref, start, end)

        if len(data) != end - start + 1:
            raise TransportError(
                f"expected {end - start + 1} bytes for chunk {index} of "
                f"{self._object.id}, but received {len(data)}"
            )

        os.makedirs(self._settings.path, exist_ok=True)

        temp_path = f"{path}.{uuid.uuid4().hex}{TEMP_SUFFIX}"

        try:
            with open(temp_path, "wb") as f:
                f.write(data)

            os.replace(temp_path, path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.remove(temp_path)

            raise

        return path


class BufferManager(ContentReader):
    """
    Factory of chunked buffers that all share the same settings and flight registry.

    The file system opens one buffer per file handle through this class.
    """

    def __init__(self, settings: ChunkSettings, fetch: RangeFetcher):
        """Instantiate buffer management for the given chunk settings."""
        self._settings = settings
        self._fetch = fetch
        self._flights = FlightRegistry()

        os.makedirs(self._settings.path, exist_ok=True)

    @property
    def settings(self) -> ChunkSettings:
        """Return the chunk settings used by all buffers."""
        return self._settings

    def open(self, obj: RemoteObject) -> ChunkedBuffer:
        """Create a buffer to read the contents of the specified object."""
        if obj.is_directory:
            raise IsADirectoryError(f"{obj.id} is a directory")

        return ChunkedBuffer(obj, self._settings, self._fetch, self._flights)
