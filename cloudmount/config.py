"""Module for configuration variables with defaults that are overridable by a file."""

from __future__ import annotations

from configparser import ConfigParser, SectionProxy
from dataclasses import dataclass, field
import os
import tempfile
from typing import FrozenSet

from cloudmount.constants import DEFAULT_BLACKLIST
from cloudmount.logger import log


@dataclass
class DriveConfig:
    """Configuration variables related to accessing the Drive API."""

    client_id: str = ""
    client_secret: str = ""

    @staticmethod
    def load(section: SectionProxy) -> DriveConfig:
        """Load overridden variables from a section within a config file."""
        config = DriveConfig()

        config.client_id = section.get("client_id", fallback=config.client_id)
        config.client_secret = section.get(
            "client_secret", fallback=config.client_secret
        )

        return config


@dataclass
class ChunkConfig:
    """Configuration variables related to caching file contents."""

    path: str = os.path.join(tempfile.gettempdir(), "cloudmount", "chunks")
    size: int = 5 * 1024 * 1024  # 5 MiB

    clear_interval: int = 60

    @staticmethod
    def load(section: SectionProxy) -> ChunkConfig:
        """Load overridden variables from a section within a config file."""
        config = ChunkConfig()

        config.path = os.path.expanduser(section.get("path", fallback=config.path))
        config.size = section.getint("size", fallback=config.size)

        config.clear_interval = section.getint(
            "clear_interval", fallback=config.clear_interval
        )

        return config


@dataclass
class SyncConfig:
    """Configuration variables related to synchronizing the metadata cache."""

    refresh_interval: int = 5 * 60

    blacklist: FrozenSet[str] = DEFAULT_BLACKLIST

    @staticmethod
    def load(section: SectionProxy) -> SyncConfig:
        """Load overridden variables from a section within a config file."""
        config = SyncConfig()

        config.refresh_interval = section.getint(
            "refresh_interval", fallback=config.refresh_interval
        )

        if "blacklist" in section:
            config.blacklist = frozenset(
                name.strip() for name in section["blacklist"].split(",") if name.strip()
            )

        return config


@dataclass
class Config:
    """Configuration variables."""

    drive: DriveConfig = field(default_factory=DriveConfig)
    chunks: ChunkConfig = field(default_factory=ChunkConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)

    @staticmethod
    def load(filename: str) -> Config:
        """Load overridden configuration variables from a config file."""
        parser = ConfigParser()

        config = Config()

        try:
            with open(filename, "r") as f:
                parser.read_string(f.read(), filename)

            if "drive" in parser:
                config.drive = DriveConfig.load(parser["drive"])
            if "chunks" in parser:
                config.chunks = ChunkConfig.load(parser["chunks"])
            if "sync" in parser:
                config.sync = SyncConfig.load(parser["sync"])
        except FileNotFoundError:
            log.info(f"no config file at {filename}")
        except Exception as e:
            # An unreadable config file is not considered a fatal error since we can
            # fall back to defaults.
            log.error(f"failed to read config file {filename}: {e}")
        else:
            log.info(f"loaded config from {filename}")

        return config
