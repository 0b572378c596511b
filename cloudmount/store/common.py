"""Records kept in the metadata cache."""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import FrozenSet


@dataclass
class RemoteObject:
    """
    Cached metadata of a single remote file or folder.

    Names are only unique within a parent and an object may have any number of parents.
    Objects without parents are roots. The download reference is an opaque URL that the
    remote API accepts for ranged downloads and is empty for folders.
    """

    id: str
    name: str
    is_directory: bool = False
    size: int = 0
    last_modified: float = 0.0
    download_ref: str = ""
    parents: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        # Deserialized records carry their parents as a list
        self.parents = frozenset(self.parents)


@dataclass
class Credential:
    """
    OAuth token material for the remote API.

    The expiry is a POSIX timestamp; zero means unknown, in which case the access token
    is used until the API rejects it.
    """

    access_token: str
    refresh_token: str = ""
    token_type: str = "Bearer"
    expiry: float = 0.0

    def expired(self, leeway: float = 60.0) -> bool:
        """Check if the access token expires within the leeway (in seconds)."""
        return self.expiry != 0.0 and time.time() + leeway >= self.expiry
