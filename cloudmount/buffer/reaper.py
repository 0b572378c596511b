"""Module that bounds the disk usage of the chunk directory."""

import os
import time

from cloudmount.buffer.common import ChunkSettings, TEMP_SUFFIX
from cloudmount.logger import log


class ChunkReaper:
    """
    Periodic coarse eviction of cached chunks.

    Rather than tracking the size and last access of every chunk, the reaper simply
    deletes every chunk file in the directory on each sweep. Evicted chunks are
    transparently downloaded again by the next read that needs them, so eviction only
    ever affects performance.

    Chunks that are still being downloaded are stored under a temporary name and are
    left alone, unless they are so old that the download that created them must have
    died with a previous process.
    """

    def __init__(self, settings: ChunkSettings, stale_after: float = 3600.0):
        """Instantiate a reaper for the chunk directory in the given settings."""
        self._settings = settings
        self._stale_after = stale_after

    def sweep(self) -> int:
        """Delete all chunk files and return how many were deleted."""
        try:
            entries = list(os.scandir(self._settings.path))
        except FileNotFoundError:
            log.debug(f"no chunk directory at {self._settings.path}")
            return 0

        now = time.time()
        removed = 0

        for entry in entries:
            if not entry.is_file(follow_symlinks=False):
                continue

            try:
                if entry.name.endswith(TEMP_SUFFIX):
                    if now - entry.stat().st_mtime < self._stale_after:
                        continue

                os.remove(entry.path)
                removed += 1
            except FileNotFoundError:
                # Race condition where the file has been renamed or removed already
                pass

        if removed > 0:
            log.info(f"removed {removed} chunks from {self._settings.path}")

        return removed
