"""
Exceptions raised by the metadata cache, the chunked buffer and the remote API client.

The taxonomy follows how far an error is allowed to travel:

* ObjectNotFound is an expected, local condition (a missing or blacklisted entry) and is
turned into "no such file" by the file system adapter.
* TransportError is a network or API failure. The change sync recovers from it by
retrying on its next tick, while reads surface it to the caller as an I/O error.
* AuthError and StoreCorruption are fatal during startup because continuing would
either fail every request or silently force a complete resync.
"""


class CloudMountError(Exception):
    """Base class of all cloudmount errors."""


class ObjectNotFound(CloudMountError, LookupError):
    """Raised when an object, child or stored value does not exist."""


class TransportError(CloudMountError):
    """Raised when a request to the remote API fails."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        """Instantiate with a description and the HTTP status code, if any."""
        super().__init__(message, status_code)

        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.message} (HTTP {self.status_code})"
        else:
            return self.message


class AuthError(CloudMountError):
    """Raised when no valid credential is available for the remote API."""


class StoreCorruption(CloudMountError):
    """Raised when the persisted metadata cache cannot be read."""


class ChunkOutOfRange(CloudMountError, ValueError):
    """Raised when reading at an offset beyond the end of an object."""
