"""Fixtures shared by the cloudmount tests."""

import pytest

from cloudmount.store import ObjectStore


@pytest.fixture
def store(tmp_path):
    with ObjectStore(str(tmp_path / "cache.db")) as store:
        yield store
