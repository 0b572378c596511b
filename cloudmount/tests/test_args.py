import os

import pytest

from cloudmount.args import Arguments


def test_no_args():
    with pytest.raises(SystemExit):
        Arguments.parse([])


def test_basic_usage():
    args = Arguments.parse(["ls", "/Photos"])

    assert args.command == "ls"
    assert args.path == "/Photos"

    assert args.config == os.path.expanduser("~/.cloudmount")
    assert args.temp is None
    assert args.chunk_size is None
    assert not args.debug


def test_default_path():
    args = Arguments.parse(["serve"])

    assert args.command == "serve"
    assert args.path == "/"


def test_invalid_command():
    with pytest.raises(SystemExit):
        Arguments.parse(["mount"])


def test_config_paths():
    args = Arguments.parse(["--config=/etc/cloudmount", "sync"])

    assert args.config_file == "/etc/cloudmount/config.ini"
    assert args.cache_file == "/etc/cloudmount/cache.db"


def test_overrides():
    args = Arguments.parse(
        [
            "--temp=/tmp/test",
            "--chunk-size=1024",
            "--refresh-interval=10",
            "--clear-chunk-interval=20",
            "sync",
        ]
    )

    assert args.temp == "/tmp/test"
    assert args.chunk_size == 1024
    assert args.refresh_interval == 10
    assert args.clear_chunk_interval == 20


def test_invalid_chunk_size():
    with pytest.raises(SystemExit):
        Arguments.parse(["--chunk-size=0", "sync"])

    with pytest.raises(SystemExit):
        Arguments.parse(["--chunk-size=abc", "sync"])


def test_log_level():
    args = Arguments.parse(["--log-level=3", "--debug", "sync"])

    assert args.log_level == 3
    assert args.debug
