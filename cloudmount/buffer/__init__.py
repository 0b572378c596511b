"""
Modules that stream the contents of remote objects through a chunked disk cache.

The kernel reads files in small blocks at arbitrary offsets, while the remote API is
slow to respond to every individual request. Contents are therefore downloaded in large
fixed-size chunks with ranged requests, stored on disk and then sliced to answer the
actual reads. Only chunks that are actually read are ever downloaded, which keeps
seeking in large media files cheap.

The chunk directory is shared between the buffers that fill it and the reaper that
periodically empties it. The two are kept apart by renaming completed chunks into place,
so neither needs to lock the other out.
"""

from .buffer import BufferManager, ChunkedBuffer, RangeFetcher
from .common import ChunkSettings, FlightRegistry
from .reaper import ChunkReaper

__all__ = [
    "BufferManager",
    "ChunkedBuffer",
    "ChunkReaper",
    "ChunkSettings",
    "FlightRegistry",
    "RangeFetcher",
]
