"""Module defining various global constants."""

# cloudmount version
VERSION = "1.0.0"

# Format version of the persisted metadata cache.
# The major version must match, otherwise the cache is treated as unreadable rather than
# being silently rebuilt from scratch.
STORE_SCHEMA_VERSION = "1.0.0"

# Special exit codes for when cloudmount fails during startup.
STORE_ERROR_CODE = 3
AUTH_ERROR_CODE = 4
CLOUDMOUNT_ERROR_CODE = 254

# Names that are never returned by a name-based lookup, mostly because tools like git
# and desktop trash implementations probe for them on every directory access.
DEFAULT_BLACKLIST = frozenset([".git", "HEAD", ".Trash", ".Trash-1000"])

# Id of the root folder in the remote store
ROOT_ID = "root"

# Number of change entries requested per page of the change feed
CHANGES_PAGE_SIZE = 1000
