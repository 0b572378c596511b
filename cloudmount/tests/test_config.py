import os.path

from configparser import ConfigParser

from cloudmount.config import ChunkConfig, Config, DriveConfig, SyncConfig
from cloudmount.constants import DEFAULT_BLACKLIST


def test_chunk_config_defaults():
    parser = ConfigParser()
    parser.read_string("[chunks]")

    cfg = ChunkConfig.load(parser["chunks"])

    assert cfg.path is not None
    assert cfg.size == 5 * 1024 * 1024
    assert cfg.clear_interval == 60


def test_chunk_config_load():
    parser = ConfigParser()
    parser.read_string(
        """
        [chunks]
        path = ~/test
        size = 123
        clear_interval = 456
        """
    )

    cfg = ChunkConfig.load(parser["chunks"])

    assert cfg.path == os.path.expanduser("~/test")
    assert cfg.size == 123
    assert cfg.clear_interval == 456


def test_sync_config_defaults():
    parser = ConfigParser()
    parser.read_string("[sync]")

    cfg = SyncConfig.load(parser["sync"])

    assert cfg.refresh_interval == 300
    assert cfg.blacklist == DEFAULT_BLACKLIST


def test_sync_config_load():
    parser = ConfigParser()
    parser.read_string(
        """
        [sync]
        refresh_interval = 60
        blacklist = .git, .svn,,node_modules
        """
    )

    cfg = SyncConfig.load(parser["sync"])

    assert cfg.refresh_interval == 60
    assert cfg.blacklist == frozenset([".git", ".svn", "node_modules"])


def test_drive_config_load():
    parser = ConfigParser()
    parser.read_string(
        """
        [drive]
        client_id = id
        client_secret = secret
        """
    )

    cfg = DriveConfig.load(parser["drive"])

    assert cfg.client_id == "id"
    assert cfg.client_secret == "secret"


def test_config_defaults(tmpdir):
    cfg = Config.load(str(tmpdir / "nonexistent"))

    assert cfg.drive.client_id == ""
    assert cfg.chunks is not None
    assert cfg.sync is not None


def test_config_load(tmp_path):
    (tmp_path / "config").write_text(
        """
        [drive]
        client_id = id

        [chunks]
        size = 123

        [sync]
        refresh_interval = 456
        """
    )

    cfg = Config.load(str(tmp_path / "config"))

    assert cfg.drive.client_id == "id"
    assert cfg.chunks.size == 123
    assert cfg.sync.refresh_interval == 456


def test_config_load_failure_nonfatal(tmp_path):
    (tmp_path / "config").write_text("blabla")

    cfg = Config.load(str(tmp_path / "config"))

    assert cfg.chunks is not None
