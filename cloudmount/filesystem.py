"""
Module that exposes the cached drive as a read-only file system.

The file system is path based, like the high-level FUSE API: every call receives the
full path of the entry it operates on. Paths are resolved component by component from
the root folder through lookups by name in the metadata cache, so no call ever has to
wait for the remote API, except for reads of contents that are not cached yet.

The file system only uses the metadata cache and the chunked buffers through the
capabilities in cloudmount.interfaces.
"""

import errno
import itertools
import os
import stat
import threading
from typing import Dict, List, Optional, Tuple

from cloudmount.errors import ChunkOutOfRange, CloudMountError, ObjectNotFound
from cloudmount.interfaces import ContentHandle, ContentReader, MetadataQuery
from cloudmount.logger import log
from cloudmount.store import RemoteObject


def _error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


class DriveFileSystem:
    """
    Read-only file system on top of the metadata cache and chunked buffers.

    Functions raise OSError with the errno set, which is what FUSE bindings expect.
    Entries that are missing from the cache or blacklisted raise ENOENT, failures to
    download contents raise EIO.

    File handles are integers that map to a content reader for the lifetime of the
    handle, so that all reads through one handle share the same buffer.
    """

    # Permissions of all entries, since the drive is exposed read-only
    DIRECTORY_MODE = stat.S_IFDIR | 0o555
    FILE_MODE = stat.S_IFREG | 0o444

    BLOCK_SIZE = 4096

    def __init__(
        self,
        metadata: MetadataQuery,
        contents: ContentReader,
        root_id: str,
        uid: Optional[int] = None,
        gid: Optional[int] = None,
    ) -> None:
        """Instantiate the file system with the given root folder."""
        self._metadata = metadata
        self._contents = contents
        self._root_id = root_id

        self._uid = os.getuid() if uid is None else uid
        self._gid = os.getgid() if gid is None else gid

        self._handles: Dict[int, Tuple[RemoteObject, ContentHandle]] = {}
        self._handles_lock = threading.Lock()
        self._next_handle = itertools.count(1)

    def resolve(self, path: str) -> RemoteObject:
        """Find the object at the given absolute path."""
        try:
            obj = self._metadata.get(self._root_id)

            for name in path.split("/"):
                if not name:
                    continue

                if not obj.is_directory:
                    raise _error(errno.ENOTDIR)

                obj = self._metadata.find_child(obj.id, name)
        except ObjectNotFound:
            raise _error(errno.ENOENT)

        return obj

    #
    # Metadata access
    #

    def getattr(self, path: str, fh: Optional[int]) -> dict:
        """Retrieve the attributes of a file or folder."""
        if fh is not None:
            obj = self._handle(fh)[0]
        else:
            obj = self.resolve(path)

        mtime_ns = int(obj.last_modified * 1e9)

        return {
            "st_mode": self.DIRECTORY_MODE if obj.is_directory else self.FILE_MODE,
            "st_nlink": 2 if obj.is_directory else 1,
            "st_uid": self._uid,
            "st_gid": self._gid,
            "st_size": obj.size,
            "st_blocks": (obj.size + 511) // 512,
            "st_atime_ns": mtime_ns,
            "st_mtime_ns": mtime_ns,
            "st_ctime_ns": mtime_ns,
        }

    def readdir(self, path: str) -> List[str]:
        """List the names of the entries in a folder."""
        obj = self.resolve(path)

        if not obj.is_directory:
            raise _error(errno.ENOTDIR)

        return [".", ".."] + [
            child.name for child in self._metadata.list_children(obj.id)
        ]

    def statfs(self, path: str) -> dict:
        """Retrieve information about the file system."""
        return {
            "f_bsize": self.BLOCK_SIZE,
            "f_frsize": self.BLOCK_SIZE,
            "f_blocks": 0,
            "f_bfree": 0,
            "f_bavail": 0,
            "f_namemax": 255,
        }

    #
    # File operations
    #

    def open(self, path: str, flags: int) -> int:
        """Open a file for reading."""
        if flags & (os.O_WRONLY | os.O_RDWR | os.O_APPEND | os.O_TRUNC):
            raise _error(errno.EROFS)

        obj = self.resolve(path)

        if obj.is_directory:
            raise _error(errno.EISDIR)

        reader = self._contents.open(obj)

        with self._handles_lock:
            fh = next(self._next_handle)
            self._handles[fh] = (obj, reader)

        return fh

    def read(self, path: str, fh: int, offset: int, size: int) -> bytes:
        """Read a range of bytes from an opened file."""
        obj, reader = self._handle(fh)

        # Reading at or beyond the end of a file is not an error for the kernel
        if offset >= obj.size:
            return b""

        try:
            return reader.read_at(offset, size)
        except ChunkOutOfRange:
            return b""
        except CloudMountError as e:
            log.warning(f"failed to read {path} at {offset}: {e}")
            raise _error(errno.EIO)

    def release(self, path: str, fh: int) -> None:
        """Close an opened file."""
        with self._handles_lock:
            self._handles.pop(fh, None)

    #
    # Modification is not supported
    #

    def create(self, path: str, flags: int, mode: int) -> int:
        raise _error(errno.EROFS)

    def write(self, path: str, fh: int, offset: int, data: bytes) -> int:
        raise _error(errno.EROFS)

    def mkdir(self, path: str, mode: int) -> None:
        raise _error(errno.EROFS)

    def unlink(self, path: str) -> None:
        raise _error(errno.EROFS)

    def rmdir(self, path: str) -> None:
        raise _error(errno.EROFS)

    def rename(self, old: str, new: str) -> None:
        raise _error(errno.EROFS)

    def _handle(self, fh: int) -> Tuple[RemoteObject, ContentHandle]:
        with self._handles_lock:
            try:
                return self._handles[fh]
            except KeyError:
                raise _error(errno.EBADF)

    @property
    def open_handles(self) -> int:
        """Return the number of currently opened file handles."""
        with self._handles_lock:
            return len(self._handles)
