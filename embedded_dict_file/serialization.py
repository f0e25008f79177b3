from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Tuple, TypeVar

from .errors import DecodeError, EncodeError

T = TypeVar("T")

DEFAULT_SEPARATOR = "\t"
_LINE_BREAKS = ("\n", "\r")


@dataclass(frozen=True)
class TypeSerializer(Generic[T]):
    """
    Bidirectional string conversion for one type.
    `serialize` turns a value into text, `deserialize` parses it back.
    """
    serialize: Callable[[T], str] = str
    deserialize: Callable[[str], T] = str
    name: str = "str"

    def __repr__(self) -> str:
        return f"TypeSerializer({self.name})"


def _bool_to_str(v: bool) -> str:
    return "true" if v else "false"


def _str_to_bool(s: str) -> bool:
    if s == "true":
        return True
    if s == "false":
        return False
    raise ValueError(f"invalid bool literal: {s!r}")


def canonical_json(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


STR: TypeSerializer[str] = TypeSerializer(str, str, "str")
INT: TypeSerializer[int] = TypeSerializer(str, int, "int")
FLOAT: TypeSerializer[float] = TypeSerializer(repr, float, "float")
BOOL: TypeSerializer[bool] = TypeSerializer(_bool_to_str, _str_to_bool, "bool")
JSON: TypeSerializer[Any] = TypeSerializer(canonical_json, json.loads, "json")


@dataclass(frozen=True)
class SerializationSettings:
    """
    How a DictionaryFile turns entries into lines and back.

    A line is ``key.serialize(k) + separator + value.serialize(v)``. Decoding
    splits on the first separator only, so values may contain it but keys may not.
    """
    key: TypeSerializer = field(default=STR)
    value: TypeSerializer = field(default=STR)
    separator: str = DEFAULT_SEPARATOR

    def __post_init__(self) -> None:
        if not isinstance(self.separator, str) or len(self.separator) != 1:
            raise ValueError(f"separator must be a single character, got {self.separator!r}")
        if self.separator in _LINE_BREAKS:
            raise ValueError("separator cannot be a line break")

    @classmethod
    def uniform(cls, serializer: TypeSerializer, separator: str = DEFAULT_SEPARATOR) -> "SerializationSettings":
        """Same converter for keys and values."""
        return cls(key=serializer, value=serializer, separator=separator)

    def encode_key(self, key: Any) -> str:
        try:
            s = self.key.serialize(key)
        except Exception as e:
            raise EncodeError(f"cannot serialize key {key!r} as {self.key.name}: {e}") from e
        if not isinstance(s, str):
            raise EncodeError(f"{self.key.name} serializer returned {type(s).__name__}, expected str")
        if self.separator in s:
            raise EncodeError(f"serialized key {s!r} contains the separator {self.separator!r}")
        if any(ch in s for ch in _LINE_BREAKS):
            raise EncodeError(f"serialized key {s!r} contains a line break")
        return s

    def encode_value(self, value: Any) -> str:
        try:
            s = self.value.serialize(value)
        except Exception as e:
            raise EncodeError(f"cannot serialize value {value!r} as {self.value.name}: {e}") from e
        if not isinstance(s, str):
            raise EncodeError(f"{self.value.name} serializer returned {type(s).__name__}, expected str")
        if any(ch in s for ch in _LINE_BREAKS):
            raise EncodeError(f"serialized value {s!r} contains a line break")
        return s

    def encode(self, key: Any, value: Any) -> str:
        return f"{self.encode_key(key)}{self.separator}{self.encode_value(value)}"

    def decode(self, line: str) -> Tuple[Any, Any]:
        """
        Parse one stored line into (key, value).
        Raises DecodeError without location info; the caller adds path/lineno.
        """
        skey, sep, sval = line.partition(self.separator)
        if not sep:
            raise DecodeError(f"missing separator {self.separator!r} in line {line!r}")
        try:
            key = self.key.deserialize(skey)
        except Exception as e:
            raise DecodeError(f"cannot parse key {skey!r} as {self.key.name}: {e}") from e
        try:
            value = self.value.deserialize(sval)
        except Exception as e:
            raise DecodeError(f"cannot parse value {sval!r} as {self.value.name}: {e}") from e
        return key, value
