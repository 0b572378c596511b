import sqlite3
import threading

import pytest

from cloudmount.errors import ObjectNotFound, StoreCorruption
from cloudmount.store import Credential, ObjectStore, RemoteObject


def obj(object_id, *parents, name=None, **attribs):
    return RemoteObject(
        id=object_id, name=name or object_id, parents=frozenset(parents), **attribs
    )


def child_ids(store, parent_id):
    return sorted(o.id for o in store.list_children(parent_id))


def test_get_missing(store):
    with pytest.raises(ObjectNotFound):
        store.get("nonexistent")


def test_upsert_get(store):
    o = obj(
        "a",
        "root",
        "other",
        size=123,
        last_modified=1500000000.5,
        download_ref="https://example.com/a",
    )

    store.upsert(o)

    assert store.get("a") == o
    assert "a" in child_ids(store, "root")
    assert "a" in child_ids(store, "other")


def test_upsert_directory(store):
    o = obj("dir", "root", is_directory=True)

    store.upsert(o)

    assert store.get("dir").is_directory
    assert store.get("dir").size == 0


def test_upsert_replaces_parents(store):
    store.upsert(obj("a", "p1", "p2"))
    store.upsert(obj("a", "p2", "p3"))

    assert child_ids(store, "p1") == []
    assert child_ids(store, "p2") == ["a"]
    assert child_ids(store, "p3") == ["a"]
    assert store.count() == 1


def test_upsert_without_parents(store):
    store.upsert(obj("a", "p1"))
    store.upsert(obj("a"))

    assert store.get("a").parents == frozenset()
    assert child_ids(store, "p1") == []


def test_list_children_unknown_parent(store):
    assert store.list_children("nonexistent") == []


def test_remove(store):
    store.upsert(obj("a", "p1", "p2"))
    store.upsert(obj("b", "p1"))

    store.remove("a")

    with pytest.raises(ObjectNotFound):
        store.get("a")

    assert child_ids(store, "p1") == ["b"]
    assert child_ids(store, "p2") == []


def test_remove_missing(store):
    store.remove("nonexistent")

    assert store.count() == 0


def test_remove_does_not_cascade(store):
    store.upsert(obj("folder", "root", is_directory=True))
    store.upsert(obj("file", "folder"))

    store.remove("folder")

    assert child_ids(store, "root") == []

    # The child is orphaned but still indexed under its removed parent
    assert store.get("file").parents == frozenset(["folder"])
    assert child_ids(store, "folder") == ["file"]


def test_index_is_inverse_of_parents(store):
    store.upsert(obj("a", "p1", "p2"))
    store.upsert(obj("b", "p2"))
    store.upsert(obj("c", "p1", "p3"))
    store.upsert(obj("a", "p3"))
    store.remove("c")
    store.upsert(obj("d"))

    objects = [store.get(i) for i in ["a", "b", "d"]]

    for parent in ["p1", "p2", "p3"]:
        listed = child_ids(store, parent)

        for o in objects:
            assert (o.id in listed) == (parent in o.parents)

    assert child_ids(store, "p1") == []


def test_find_child(store):
    store.upsert(obj("a", "root", name="hello.txt"))
    store.upsert(obj("b", "other", name="hello.txt"))

    assert store.find_child("root", "hello.txt").id == "a"
    assert store.find_child("other", "hello.txt").id == "b"

    with pytest.raises(ObjectNotFound):
        store.find_child("root", "missing.txt")


def test_find_child_blacklisted(store):
    store.upsert(obj("git", "root", name=".git", is_directory=True))

    with pytest.raises(ObjectNotFound):
        store.find_child("root", ".git")

    # Blacklisted objects are still stored and listed
    assert store.get("git").name == ".git"
    assert child_ids(store, "root") == ["git"]


def test_custom_blacklist(tmp_path):
    with ObjectStore(str(tmp_path / "cache.db"), blacklist=["secret"]) as store:
        store.upsert(obj("a", "root", name="secret"))
        store.upsert(obj("b", "root", name=".git"))

        with pytest.raises(ObjectNotFound):
            store.find_child("root", "secret")

        assert store.find_child("root", ".git").id == "b"
        assert store.blacklist == frozenset(["secret"])


def test_cursor(store):
    assert store.get_cursor() == 0

    store.set_cursor(1234)

    assert store.get_cursor() == 1234


def test_credential(store):
    with pytest.raises(ObjectNotFound):
        store.get_credential()

    credential = Credential("access", "refresh", expiry=1600000000.0)
    store.set_credential(credential)

    assert store.get_credential() == credential


def test_persistence(tmp_path):
    path = str(tmp_path / "cache.db")

    with ObjectStore(path) as store:
        store.upsert(obj("a", "root", size=10))
        store.set_cursor(42)
        store.set_credential(Credential("access"))

    with ObjectStore(path) as store:
        assert store.get("a").size == 10
        assert child_ids(store, "root") == ["a"]
        assert store.get_cursor() == 42
        assert store.get_credential().access_token == "access"


def test_store_not_open(tmp_path):
    store = ObjectStore(str(tmp_path / "cache.db"))

    with pytest.raises(Exception):
        store.get("a")


def test_corrupt_database(tmp_path):
    (tmp_path / "cache.db").write_bytes(b"this is not a database" * 100)

    with pytest.raises(StoreCorruption):
        ObjectStore(str(tmp_path / "cache.db")).open()


def test_incompatible_schema(tmp_path):
    path = str(tmp_path / "cache.db")

    with ObjectStore(path):
        pass

    conn = sqlite3.connect(path)
    with conn:
        conn.execute(
            "UPDATE state SET value = ? WHERE key = 'schema'", (b"\xa55.0.0",)
        )
    conn.close()

    with pytest.raises(StoreCorruption):
        ObjectStore(path).open()


def test_corrupt_record(tmp_path):
    path = str(tmp_path / "cache.db")

    with ObjectStore(path) as store:
        store.upsert(obj("a", "root"))

    conn = sqlite3.connect(path)
    with conn:
        conn.execute("UPDATE objects SET record = ? WHERE id = 'a'", (b"\xc1",))
    conn.close()

    with ObjectStore(path) as store:
        with pytest.raises(StoreCorruption):
            store.get("a")


def test_concurrent_readers_and_writer(store):
    store.upsert(obj("root", is_directory=True))

    errors = []

    def writer():
        for i in range(100):
            store.upsert(obj(f"file{i}", "root"))
            if i % 2 == 0:
                store.remove(f"file{i}")

    def reader():
        try:
            for _ in range(100):
                for child in store.list_children("root"):
                    assert "root" in child.parents
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=writer)]
    threads += [threading.Thread(target=reader) for _ in range(4)]

    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(store.list_children("root")) == 50
