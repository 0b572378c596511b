"""Module defining the command-line arguments and providing a parser for them."""

from __future__ import annotations

import argparse
import os
from typing import List, Optional

from cloudmount.constants import VERSION


class Arguments(argparse.Namespace):
    """Parsed command-line arguments."""

    command: str
    path: str

    config: str
    temp: Optional[str]

    chunk_size: Optional[int]
    refresh_interval: Optional[int]
    clear_chunk_interval: Optional[int]

    log_level: int
    debug: bool

    @classmethod
    def parse(cls, args: Optional[List[str]] = None) -> Arguments:
        """
        Parse command-line arguments from the given list of strings.

        Defaults to sys.argv if none are specified.
        """
        return cls._get_parser().parse_args(args, namespace=cls())

    @property
    def config_file(self) -> str:
        """Return the path of the config file within the config directory."""
        return os.path.join(self.config, "config.ini")

    @property
    def cache_file(self) -> str:
        """Return the path of the metadata cache within the config directory."""
        return os.path.join(self.config, "cache.db")

    @classmethod
    def _get_parser(cls) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description="Mirror a cloud drive in a local cache and read from it.",
            usage="cloudmount [option...] command [path]",
        )

        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {VERSION}",
            help="show the program version",
        )

        # Primary arguments
        parser.add_argument(
            "command",
            choices=["serve", "sync", "ls", "cat"],
            help="keep the cache in sync (serve), sync once (sync), list a folder "
            "(ls), or print a file (cat)",
        )
        parser.add_argument(
            "path", type=str, nargs="?", default="/", help="path within the drive"
        )

        # Locations
        parser.add_argument(
            "--config",
            type=os.path.expanduser,
            help="path to the configuration directory (default is ~/.cloudmount)",
            default=os.path.expanduser("~/.cloudmount"),
        )
        parser.add_argument(
            "--temp",
            type=os.path.expanduser,
            help="path to a temporary directory to store chunks in",
        )

        # Overrides of config file settings
        parser.add_argument(
            "--chunk-size",
            type=cls._parse_positive_int,
            help="size of each downloaded chunk in bytes (default is 5 MiB)",
        )
        parser.add_argument(
            "--refresh-interval",
            type=cls._parse_positive_int,
            help="seconds to wait between checks for changes (default is 300)",
        )
        parser.add_argument(
            "--clear-chunk-interval",
            type=cls._parse_positive_int,
            help="seconds to wait between clearing the chunk directory (default is 60)",
        )

        # Logging
        parser.add_argument(
            "--log-level",
            type=int,
            default=0,
            help="log level (0 = error, 1 = warning, 2 = info, 3 = debug, "
            "4 = trace)",
        )
        parser.add_argument(
            "--debug", action="store_true", help="enable debug output"
        )

        return parser

    @staticmethod
    def _parse_positive_int(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"{value} is not a number")

        if number <= 0:
            raise argparse.ArgumentTypeError(f"{value} is not a positive number")

        return number
