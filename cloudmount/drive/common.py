"""Data structures of the Drive change feed and their mapping onto cached objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from cloudmount.store import RemoteObject

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


@dataclass
class Change:
    """
    A single entry of the change feed.

    The file is the complete new record of the changed file and is absent for entries
    that report a deletion.
    """

    id: int
    file_id: str
    deleted: bool = False
    file: Optional[Dict[str, Any]] = None

    @property
    def removed(self) -> bool:
        """Check if the change means that the file should disappear from the cache."""
        return self.deleted or (self.file is not None and is_trashed(self.file))

    @staticmethod
    def from_json(item: Dict[str, Any]) -> Change:
        """Parse a change from a Drive v2 changes resource."""
        return Change(
            id=int(item.get("id", 0)),
            file_id=item["fileId"],
            deleted=bool(item.get("deleted", False)),
            file=item.get("file"),
        )


@dataclass
class ChangePage:
    """One page of the change feed."""

    changes: List[Change] = field(default_factory=list)
    largest_change_id: int = 0
    next_page_token: str = ""

    @staticmethod
    def from_json(data: Dict[str, Any]) -> ChangePage:
        """Parse a page from a Drive v2 change list response."""
        return ChangePage(
            changes=[Change.from_json(item) for item in data.get("items", [])],
            largest_change_id=int(data.get("largestChangeId", 0)),
            next_page_token=data.get("nextPageToken", ""),
        )


def is_trashed(file: Dict[str, Any]) -> bool:
    """Check if a Drive file has been moved to the trash."""
    return bool(file.get("explicitlyTrashed", False))


def parse_timestamp(value: str) -> float:
    """Parse an RFC 3339 timestamp as used by the Drive API into a POSIX timestamp."""
    # Python 3.7 doesn't accept the "Z" suffix in fromisoformat()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    return datetime.fromisoformat(value).timestamp()


def map_file(file: Dict[str, Any]) -> RemoteObject:
    """
    Map a Drive v2 file resource onto a cached object.

    Raises ValueError or KeyError if the resource is missing required fields.
    """
    is_directory = file.get("mimeType") == FOLDER_MIME_TYPE

    return RemoteObject(
        id=file["id"],
        name=file.get("title", ""),
        is_directory=is_directory,
        size=0 if is_directory else int(file.get("fileSize", 0)),
        last_modified=parse_timestamp(file["modifiedDate"]),
        download_ref="" if is_directory else file.get("downloadUrl", ""),
        parents=frozenset(parent["id"] for parent in file.get("parents", [])),
    )
