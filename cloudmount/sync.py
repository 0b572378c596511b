"""
Module that keeps the metadata cache consistent with the remote change feed.

The remote API reports every modification in a drive as a numbered change. The cache
stores a cursor with the id of the next change it still has to apply, and every sync run
applies all changes from that cursor onwards. The very first run starts at 0 and thereby
replays the complete history of the drive, which doubles as the initial population of
the cache (a "cold sync").

The cursor is only advanced once all pages of changes in a run have been applied. If a
run fails halfway, the changes that were already applied stay applied and the next run
simply starts at the old cursor again. This is safe because applying a change is
idempotent: an update overwrites the complete record and a deletion of a missing object
is a no-op. It also means that the feed never needs to acknowledge individual entries.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import threading
import time
from typing import Optional

from cloudmount.drive import DriveClient
from cloudmount.drive.common import Change, map_file
from cloudmount.errors import ObjectNotFound, TransportError
from cloudmount.logger import log, summarize, TRACE
from cloudmount.store import ObjectStore, RemoteObject


@dataclass
class SyncStatus:
    """Snapshot of the progress of the change sync for observability."""

    first_sync: bool = True
    running: bool = False

    runs: int = 0
    consecutive_failures: int = 0

    last_success: float = 0.0
    last_error: Optional[str] = None

    processed: int = 0
    updated: int = 0
    deleted: int = 0


class ChangeSync:
    """
    Engine that applies the remote change feed to the object store.

    It is the only writer of objects and the cursor in the store (apart from the root
    folder that is stored during startup). Runs are triggered by a periodic task and
    never overlap.

    Repeated failures, for example because the network is down, cause subsequent ticks
    to be skipped with an exponentially increasing backoff. Correctness never depends on
    this, since every run starts from the last confirmed cursor.
    """

    def __init__(self, store: ObjectStore, client: DriveClient, max_backoff: int = 8):
        """Instantiate a change sync between the given store and API client."""
        self._store = store
        self._client = client
        self._max_backoff = max_backoff

        self._run_lock = threading.Lock()
        self._status = SyncStatus()
        self._skip_ticks = 0

    @property
    def status(self) -> SyncStatus:
        """Return a copy of the current sync status (counters may be mid-update)."""
        return replace(self._status)

    def ensure_root(self) -> RemoteObject:
        """Make sure that the root folder is cached, fetching it if necessary."""
        root = self._client.get_root()

        try:
            return self._store.get(root.id)
        except ObjectNotFound:
            log.debug(f"caching root folder {root.id}")
            self._store.upsert(root)
            return root

    def tick(self) -> None:
        """Run a sync, unless it should be skipped because of earlier failures."""
        if self._skip_ticks > 0:
            self._skip_ticks -= 1
            log.debug(f"skipping change check ({self._skip_ticks} more to skip)")
            return

        success = False

        try:
            success = self.check_changes()
        finally:
            if not success:
                failures = self._status.consecutive_failures
                self._skip_ticks = min(2 ** (failures - 1) - 1, self._max_backoff)

    def check_changes(self) -> bool:
        """
        Apply all changes since the stored cursor to the store.

        Returns whether the run completed and the cursor was advanced. Transport errors
        are logged and only postpone the sync to the next run. All other errors are
        counted as a failed run and raised.
        """
        with self._run_lock:
            self._status.running = True
            self._status.runs += 1

            try:
                success = self._run()
            except Exception as e:
                self._status.consecutive_failures += 1
                self._status.last_error = str(e)
                raise
            finally:
                self._status.running = False

            if success:
                self._status.first_sync = False
                self._status.consecutive_failures = 0
                self._status.last_success = time.time()
                self._status.last_error = None
            else:
                self._status.consecutive_failures += 1

            return success

    def _run(self) -> bool:
        cursor = self._store.get_cursor()
        cold = cursor == 0

        if cold:
            log.info("first cache build process started...")
        else:
            log.debug(f"checking for changes since {cursor}")

        largest = cursor - 1
        page_token = ""

        processed = updated = deleted = 0

        while True:
            try:
                page = self._client.list_changes(cursor, page_token)
            except TransportError as e:
                log.warning(f"could not get changes, retrying next time: {e}")
                self._status.last_error = str(e)
                return False

            for change in page.changes:
                log.log(TRACE, f"change {summarize(change)}")

                if change.removed:
                    self._store.remove(change.file_id)
                    deleted += 1
                elif self._apply_update(change):
                    updated += 1

                processed += 1

            largest = max(largest, page.largest_change_id)

            if processed > 0:
                log.info(
                    f"processed {processed} items / deleted {deleted} items / "
                    f"updated {updated} items"
                )

            self._status.processed += len(page.changes)

            page_token = page.next_page_token
            if not page_token:
                break

        self._status.updated += updated
        self._status.deleted += deleted

        # The cursor points at the first change that has not been applied yet
        next_cursor = max(largest + 1, cursor)

        if next_cursor != cursor:
            self._store.set_cursor(next_cursor)

        if cold:
            log.info("first cache build process finished!")

        return True

    def _apply_update(self, change: Change) -> bool:
        """Store the new version of a changed file, returning whether it was stored."""
        try:
            obj = map_file(change.file or {})
        except (KeyError, TypeError, ValueError) as e:
            log.warning(f"could not map file {change.file_id} to object: {e}")
            return False

        self._store.upsert(obj)
        return True
