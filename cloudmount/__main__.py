"""
Module implementing the command-line interface and invoking the main logic of cloudmount.

cloudmount mirrors the folder structure of a cloud drive in a local metadata cache that
is kept up-to-date by polling the drive's change feed, and streams file contents through
a chunked disk cache. The serve command keeps the cache fresh in the background, while
ls and cat read from it the same way a mounted file system does.
"""

import logging
import signal
import sys
from typing import List, NoReturn, Optional

import cloudmount.constants as constants
from cloudmount.config import Config
from cloudmount.errors import AuthError, StoreCorruption
from cloudmount.logger import level_from_verbosity, log
import cloudmount.operations as operations
from .args import Arguments


def main(arguments: Optional[List[str]] = None) -> NoReturn:
    """
    Run cloudmount with the given arguments.

    Defaults to parsing command-line arguments from sys.argv if none are specified.
    """
    # Parse command-line arguments.
    args = Arguments.parse(arguments)

    # Configure logging.
    if args.debug:
        log.setLevel(logging.DEBUG)
    else:
        log.setLevel(level_from_verbosity(args.log_level))

    config = Config.load(args.config_file)

    log.debug(f"config directory     : {args.config}")
    log.debug(f"chunk directory      : {args.temp or config.chunks.path}")
    log.debug(f"chunk size           : {args.chunk_size or config.chunks.size}")

    ops = operations.Operations(args, config)

    try:
        exit_code = ops.run()
    except KeyboardInterrupt:
        exit_code = 128 + signal.SIGINT
    except StoreCorruption as e:
        log.error(f"cache is unreadable, remove it to resync from scratch: {e}")
        exit_code = constants.STORE_ERROR_CODE
    except AuthError as e:
        log.error(f"failed to authorize: {e}")
        exit_code = constants.AUTH_ERROR_CODE
    except Exception as e:
        log.error(f"failed to run command: {e}")
        exit_code = constants.CLOUDMOUNT_ERROR_CODE

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
