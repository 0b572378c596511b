"""
Serialization of cached records based on MessagePack.

Records in the metadata cache are plain dataclasses. They are stored as MessagePack
blobs tagged with their type name so that the cache can be read back into the exact same
dataclasses without maintaining a separate column per field.
"""

from dataclasses import fields, is_dataclass
from typing import Any, Dict

import msgpack


class Encoding:
    """Serialization and deserialization of registered dataclasses using MessagePack."""

    def __init__(self, *dataclasses: type):
        """Initialize a (de)serializer with support for the given dataclass types."""
        self._dataclasses: Dict[str, type] = {}

        for dataclass in dataclasses:
            if not is_dataclass(dataclass):
                raise TypeError(f"{dataclass} is not a dataclass")

            self._dataclasses[dataclass.__qualname__] = dataclass

    def pack(self, obj: Any) -> bytes:
        """Serialize an object using MessagePack."""
        return msgpack.packb(obj, default=self.serialize_obj)

    def unpack(self, data: bytes) -> Any:
        """Deserialize an object using MessagePack."""
        return msgpack.unpackb(data, object_hook=self.deserialize_obj)

    def serialize_obj(self, obj: Any) -> Any:
        """Turn a dataclass into a serialization friendly representation."""
        if isinstance(obj, (set, frozenset)):
            # Sorted to keep the packed form of equal records identical
            return sorted(obj)
        elif obj.__class__.__qualname__ in self._dataclasses:
            return self._serialize_dataclass(obj)
        else:
            raise ValueError(f"unserializable object {obj}")

    def deserialize_obj(self, obj: Any) -> Any:
        """Reconstruct a dataclass from a serialized representation."""
        if isinstance(obj, dict) and "__data__" in obj:
            return self._deserialize_dataclass(obj)
        else:
            return obj

    @classmethod
    def _serialize_dataclass(cls, obj: Any) -> Dict:
        """Turn a dataclass into a serialization friendly dict."""
        data = {f.name: getattr(obj, f.name) for f in fields(obj)}

        return {"__data__": {"type": obj.__class__.__qualname__, "data": data}}

    def _deserialize_dataclass(self, obj: Dict) -> Any:
        """
        Reconstruct a dataclass from its serialized representation.

        Only previously registered dataclass types can be deserialized.
        """
        type_name = obj["__data__"]["type"]
        type_data = obj["__data__"]["data"]

        if type_name in self._dataclasses:
            try:
                return self._dataclasses[type_name](**type_data)
            except Exception as e:
                raise TypeError(f"failed to deserialize {type_name}: {e}")
        else:
            raise TypeError(f"unknown dataclass '{type_name}'")
