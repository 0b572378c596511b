"""
Modules that keep a durable local mirror of the remote object graph.

Every lookup made through the mounted file system is answered from this cache rather
than from the remote API, because a single request to the API takes far longer than the
kernel is willing to wait for a directory listing. The cache is only ever written by the
change sync, which keeps it eventually consistent with the remote store, and by the
startup code that makes sure the root folder is present.
"""

from .common import Credential, RemoteObject
from .store import ObjectStore

__all__ = [
    "Credential",
    "ObjectStore",
    "RemoteObject",
]
