"""
Modules that talk to the Drive API.

Only a small part of the API is used: the change feed that reports every modification
in the drive since a given change id, a lookup of the root folder, and ranged downloads
of file contents. All requests are authorized with OAuth credentials that are obtained
once through the device flow and then kept in the metadata cache.
"""

from .auth import Authenticator
from .client import DriveClient
from .common import Change, ChangePage, map_file

__all__ = [
    "Authenticator",
    "Change",
    "ChangePage",
    "DriveClient",
    "map_file",
]
