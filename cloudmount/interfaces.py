"""
Capabilities that the file system depends on.

The file system only needs to look up metadata and to read contents. Depending on these
narrow interfaces rather than on the metadata cache and the chunked buffers directly
keeps it independent of how either of them is implemented.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from cloudmount.store import RemoteObject


class MetadataQuery(ABC):
    """Capability to look up cached objects."""

    @abstractmethod
    def get(self, object_id: str) -> RemoteObject:
        """Retrieve an object by its id, raising ObjectNotFound if it doesn't exist."""
        ...

    @abstractmethod
    def list_children(self, parent_id: str) -> List[RemoteObject]:
        """Retrieve the children of a folder."""
        ...

    @abstractmethod
    def find_child(self, parent_id: str, name: str) -> RemoteObject:
        """Find a child of a folder by name, raising ObjectNotFound if there is none."""
        ...


class ContentHandle(ABC):
    """Reader of the contents of a single opened file."""

    @abstractmethod
    def read_at(self, offset: int, length: int) -> bytes:
        """Read up to length bytes at the given offset."""
        ...


class ContentReader(ABC):
    """Capability to read the contents of files."""

    @abstractmethod
    def open(self, obj: RemoteObject) -> ContentHandle:
        """Open the contents of a file for reading."""
        ...
