from dataclasses import dataclass
from typing import List, Optional

import pytest

from cloudmount.encoding import Encoding
from cloudmount.store import Credential, RemoteObject


@dataclass
class Inner:
    value: int


@dataclass
class Outer:
    items: List[Inner]
    extra: Optional[Inner] = None


def test_remote_object():
    encoding = Encoding(RemoteObject)

    obj = RemoteObject(
        id="a",
        name="b",
        size=10,
        last_modified=1.5,
        download_ref="ref",
        parents=frozenset(["p2", "p1"]),
    )

    decoded = encoding.unpack(encoding.pack(obj))

    assert decoded == obj
    assert isinstance(decoded.parents, frozenset)


def test_equal_objects_pack_identically():
    encoding = Encoding(RemoteObject)

    a = RemoteObject(id="a", name="a", parents=frozenset(["x", "y", "z"]))
    b = RemoteObject(id="a", name="a", parents=frozenset(["z", "y", "x"]))

    assert encoding.pack(a) == encoding.pack(b)


def test_nested_dataclasses():
    encoding = Encoding(Outer, Inner)

    obj = Outer(items=[Inner(1), Inner(2)], extra=Inner(3))

    assert encoding.unpack(encoding.pack(obj)) == obj


def test_builtin_values():
    encoding = Encoding()

    assert encoding.unpack(encoding.pack(1234)) == 1234
    assert encoding.unpack(encoding.pack("1.0.0")) == "1.0.0"


def test_unregistered_dataclass():
    with pytest.raises(ValueError):
        Encoding(RemoteObject).pack(Credential("token"))


def test_unregistered_nested_dataclass():
    with pytest.raises(ValueError):
        Encoding(Outer).pack(Outer(items=[Inner(1)]))


def test_register_non_dataclass():
    with pytest.raises(TypeError):
        Encoding(dict)


def test_unknown_dataclass():
    data = Encoding(Credential).pack(Credential("token"))

    with pytest.raises(TypeError):
        Encoding(RemoteObject).unpack(data)
