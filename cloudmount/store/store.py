"""Module that implements the persistent metadata cache of the remote object graph."""

from __future__ import annotations

import os
import sqlite3
import threading
from typing import Any, FrozenSet, Iterable, List, Optional

import fasteners
import msgpack
import semver

from cloudmount.constants import DEFAULT_BLACKLIST, STORE_SCHEMA_VERSION
from cloudmount.encoding import Encoding
from cloudmount.errors import CloudMountError, ObjectNotFound, StoreCorruption
from cloudmount.interfaces import MetadataQuery
from cloudmount.logger import log
from cloudmount.store.common import Credential, RemoteObject


class ObjectStore(MetadataQuery):
    """
    Durable cache of remote objects, their parent/child index and the sync state.

    The store is the source of truth for every lookup made by the file system. It is
    backed by an SQLite database in WAL mode, which gives atomic multi-statement
    updates, crash safety, and readers that don't block on the writer.

    The database has three tables:

    * objects: one MessagePack encoded RemoteObject per id, plus its name for lookups.
    * children: (parent_id, child_id) pairs that are the exact inverse of the parents
    of all stored objects. It is only ever modified in the same transaction as the
    objects table, so a reader can never see one without the other.
    * state: singleton values like the sync cursor, the credential and the version of
    the store format.

    Every thread gets its own connection so that lookups from many file system threads
    can run concurrently. Mutations are serialized by an internal lock.

    The blacklist is applied when looking up children by name, not when objects are
    stored. Blacklisted objects are still cached and listed.

    The database file is owned by a single process, which is enforced with an
    inter-process lock next to it that is held from open() until close().
    """

    def __init__(
        self, path: str, blacklist: Iterable[str] = DEFAULT_BLACKLIST,
    ):
        """Instantiate a store backed by the database file at the given path."""
        self._path = path
        self._blacklist: FrozenSet[str] = frozenset(blacklist)

        self._encoding = Encoding(RemoteObject, Credential)

        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._write_lock = threading.Lock()

        self._process_lock = fasteners.InterProcessLock(f"{path}.lock")
        self._opened = False

    @property
    def blacklist(self) -> FrozenSet[str]:
        """Return the names that are hidden from lookups by name."""
        return self._blacklist

    def open(self) -> None:
        """Acquire the cache database and make sure that its format is readable."""
        if not self._process_lock.acquire(blocking=False):
            raise CloudMountError(f"cache {self._path} is in use by another process")

        self._opened = True

        try:
            self._initialize()
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        """Close all connections and release the database."""
        with self._connections_lock:
            for conn in self._connections:
                conn.close()

            self._connections.clear()

        # Connections of other threads are gone, so forget ours as well
        self._local = threading.local()

        if self._opened:
            self._opened = False
            self._process_lock.release()

    def __enter__(self) -> ObjectStore:
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    #
    # Objects
    #

    def get(self, object_id: str) -> RemoteObject:
        """Retrieve a cached object by its id."""
        row = (
            self._conn()
            .execute("SELECT record FROM objects WHERE id = ?", (object_id,))
            .fetchone()
        )

        if row is None:
            raise ObjectNotFound(f"object {object_id} not found")

        return self._decode_object(row[0])

    def list_children(self, parent_id: str) -> List[RemoteObject]:
        """Retrieve all cached children of a parent (in no particular order)."""
        rows = self._conn().execute(
            """
            SELECT objects.record FROM children
            JOIN objects ON objects.id = children.child_id
            WHERE children.parent_id = ?
            """,
            (parent_id,),
        )

        return [self._decode_object(record) for (record,) in rows]

    def find_child(self, parent_id: str, name: str) -> RemoteObject:
        """
        Find a child of a parent by its name.

        Blacklisted names are never found, even if such a child has been cached.
        """
        if name in self._blacklist:
            raise ObjectNotFound(f"object {name} is blacklisted")

        row = (
            self._conn()
            .execute(
                """
                SELECT objects.record FROM children
                JOIN objects ON objects.id = children.child_id
                WHERE children.parent_id = ? AND objects.name = ?
                ORDER BY objects.id
                LIMIT 1
                """,
                (parent_id, name),
            )
            .fetchone()
        )

        if row is None:
            raise ObjectNotFound(f"object {name} not found in {parent_id}")

        return self._decode_object(row[0])

    def upsert(self, obj: RemoteObject) -> None:
        """Store an object, replacing any previous version and its parent links."""
        record = self._encoding.pack(obj)

        with self._write_lock, self._conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO objects (id, name, record) VALUES (?, ?, ?)",
                (obj.id, obj.name, record),
            )

            conn.execute("DELETE FROM children WHERE child_id = ?", (obj.id,))
            conn.executemany(
                "INSERT INTO children (parent_id, child_id) VALUES (?, ?)",
                [(parent_id, obj.id) for parent_id in obj.parents],
            )

    def remove(self, object_id: str) -> None:
        """
        Delete an object and unlink it from all of its parents.

        The children of the object are left alone. They are still indexed under the
        removed id, which makes them unreachable from the root, but still retrievable by
        their own id. This matches the change feed, which only reports the deleted
        object itself.
        """
        with self._write_lock, self._conn() as conn:
            conn.execute("DELETE FROM objects WHERE id = ?", (object_id,))
            conn.execute("DELETE FROM children WHERE child_id = ?", (object_id,))

    def count(self) -> int:
        """Return the number of cached objects."""
        (count,) = self._conn().execute("SELECT COUNT(*) FROM objects").fetchone()
        return count

    #
    # Singleton values
    #

    def get_cursor(self) -> int:
        """Return the id of the next change to apply (0 if nothing was synced yet)."""
        cursor = self._get_state("cursor")
        return 0 if cursor is None else cursor

    def set_cursor(self, cursor: int) -> None:
        """Persist the id of the next change to apply."""
        self._set_state("cursor", cursor)

    def get_credential(self) -> Credential:
        """Return the stored credential for the remote API."""
        credential = self._get_state("credential")

        if credential is None:
            raise ObjectNotFound("no credential stored")
        elif not isinstance(credential, Credential):
            raise StoreCorruption("stored credential is unreadable")

        return credential

    def set_credential(self, credential: Credential) -> None:
        """Persist a (refreshed) credential for the remote API."""
        self._set_state("credential", credential)

    #
    # Internals
    #

    def _conn(self) -> sqlite3.Connection:
        """Return the connection of the calling thread, opening it on first use."""
        if not self._opened:
            raise CloudMountError("store is not open")

        conn: Optional[sqlite3.Connection] = getattr(self._local, "conn", None)

        if conn is None:
            try:
                conn = sqlite3.connect(self._path, timeout=30, check_same_thread=False)
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA synchronous=NORMAL")
            except sqlite3.DatabaseError as e:
                raise StoreCorruption(f"failed to open cache {self._path}: {e}")

            with self._connections_lock:
                self._connections.append(conn)

            self._local.conn = conn

        return conn

    def _initialize(self) -> None:
        """Create the tables if necessary and check the version of the store format."""
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        try:
            with self._write_lock, self._conn() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS objects (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        record BLOB NOT NULL
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS children (
                        parent_id TEXT NOT NULL,
                        child_id TEXT NOT NULL,
                        PRIMARY KEY (parent_id, child_id)
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_children_child ON children(child_id)"
                )
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS state (key TEXT PRIMARY KEY, value BLOB)"
                )
                conn.execute(
                    "INSERT OR IGNORE INTO state (key, value) VALUES ('schema', ?)",
                    (self._encoding.pack(STORE_SCHEMA_VERSION),),
                )
        except sqlite3.DatabaseError as e:
            raise StoreCorruption(f"failed to initialize cache {self._path}: {e}")

        stored_version = self._get_state("schema")

        try:
            version = semver.VersionInfo.parse(stored_version)
        except (TypeError, ValueError):
            raise StoreCorruption(f"unreadable cache format version {stored_version!r}")

        expected_version = semver.VersionInfo.parse(STORE_SCHEMA_VERSION)

        if version.major != expected_version.major:
            raise StoreCorruption(
                f"incompatible cache format ({version} != {expected_version})"
            )

        log.debug(f"opened cache {self._path} with {self.count()} objects")

    def _get_state(self, key: str) -> Any:
        """Read a singleton value, or None if it has not been set."""
        try:
            row = (
                self._conn()
                .execute("SELECT value FROM state WHERE key = ?", (key,))
                .fetchone()
            )
        except sqlite3.DatabaseError as e:
            raise StoreCorruption(f"failed to read {key} from cache: {e}")

        if row is None:
            return None

        try:
            return self._encoding.unpack(row[0])
        except (msgpack.UnpackException, ValueError, TypeError) as e:
            raise StoreCorruption(f"failed to decode {key} from cache: {e}")

    def _set_state(self, key: str, value: Any) -> None:
        """Write a singleton value."""
        with self._write_lock, self._conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO state (key, value) VALUES (?, ?)",
                (key, self._encoding.pack(value)),
            )

    def _decode_object(self, record: bytes) -> RemoteObject:
        """Turn a stored record back into a RemoteObject."""
        try:
            obj = self._encoding.unpack(record)
        except (msgpack.UnpackException, ValueError, TypeError) as e:
            raise StoreCorruption(f"failed to decode cached object: {e}")

        if not isinstance(obj, RemoteObject):
            raise StoreCorruption(f"unexpected cached record {obj!r}")

        return obj
