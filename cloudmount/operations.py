"""Module that wires the cache, the sync and the buffers together and runs commands."""

import contextlib
import os
import signal
import sys
import threading

from cloudmount.args import Arguments
from cloudmount.buffer import BufferManager, ChunkReaper, ChunkSettings
from cloudmount.config import Config
from cloudmount.drive import Authenticator, DriveClient
from cloudmount.errors import AuthError
from cloudmount.filesystem import DriveFileSystem
from cloudmount.logger import log
from cloudmount.scheduler import Scheduler
from cloudmount.store import ObjectStore
from cloudmount.sync import ChangeSync


class Operations:
    """Class that encapsulates the startup, the command and the shutdown."""

    def __init__(self, args: Arguments, config: Config):
        """Initialize operations based on command-line arguments and the config file."""
        self._args = args
        self._config = config

        self._stop = threading.Event()

    def run(self) -> int:
        """Run the operations and clean up properly in case of errors."""
        with contextlib.ExitStack() as stack:
            return self._run(stack)

        # https://github.com/python/mypy/issues/7726
        assert False, "unreachable"

    def stop(self) -> None:
        """Signal the serve command to shut down."""
        self._stop.set()

    def _run(self, stack: contextlib.ExitStack) -> int:
        """Set up all components and run the requested command."""
        os.makedirs(self._args.config, exist_ok=True)

        settings = ChunkSettings(path=self._chunk_path(), chunk_size=self._chunk_size())

        store = ObjectStore(self._args.cache_file, self._config.sync.blacklist)
        stack.enter_context(store)

        if not self._config.drive.client_id:
            raise AuthError(f"no client_id configured in {self._args.config_file}")

        authenticator = Authenticator(
            store, self._config.drive.client_id, self._config.drive.client_secret
        )
        authenticator.authorize()

        client = DriveClient(authenticator)
        stack.callback(client.close)

        sync = ChangeSync(store, client)
        root = sync.ensure_root()

        buffers = BufferManager(settings, client.download_range)
        fs = DriveFileSystem(store, buffers, root.id)

        command = self._args.command

        if command == "serve":
            self._serve(stack, sync, ChunkReaper(settings))
        elif command == "sync":
            if not sync.check_changes():
                return 1
        elif command == "ls":
            for name in fs.readdir(self._args.path):
                print(name)
        elif command == "cat":
            self._cat(fs, self._args.path)

        return 0

    def _serve(
        self, stack: contextlib.ExitStack, sync: ChangeSync, reaper: ChunkReaper
    ) -> None:
        """Keep the cache in sync and the chunk directory bounded until stopped."""
        scheduler = Scheduler()

        scheduler.add_periodic(
            "check-changes",
            sync.tick,
            self._refresh_interval(),
            run_immediately=True,
        )
        scheduler.add_periodic("clear-chunks", reaper.sweep, self._clear_interval())

        scheduler.start()
        stack.callback(scheduler.shutdown)

        signal.signal(signal.SIGTERM, lambda *_: self.stop())

        log.info("serving until interrupted")

        self._stop.wait()

    @staticmethod
    def _cat(fs: DriveFileSystem, path: str) -> None:
        """Write the contents of a file to stdout."""
        block_size = 1024 * 1024

        fh = fs.open(path, os.O_RDONLY)

        try:
            offset = 0

            while True:
                data = fs.read(path, fh, offset, block_size)

                if len(data) == 0:
                    break

                sys.stdout.buffer.write(data)
                offset += len(data)

            sys.stdout.buffer.flush()
        finally:
            fs.release(path, fh)

    def _chunk_path(self) -> str:
        if self._args.temp:
            return os.path.join(self._args.temp, "chunks")
        else:
            return self._config.chunks.path

    def _chunk_size(self) -> int:
        return self._args.chunk_size or self._config.chunks.size

    def _refresh_interval(self) -> int:
        return self._args.refresh_interval or self._config.sync.refresh_interval

    def _clear_interval(self) -> int:
        return self._args.clear_chunk_interval or self._config.chunks.clear_interval
