from __future__ import annotations
from typing import Any, Optional


class DictionaryFileError(Exception):
    """Base class for all errors raised by embedded_dict_file."""


class DecodeError(DictionaryFileError, ValueError):
    """A stored line could not be parsed while replaying the file."""

    def __init__(self, msg: str, *, path: Optional[str] = None, lineno: Optional[int] = None) -> None:
        self.path = path
        self.lineno = lineno
        if path is not None and lineno is not None:
            msg = f"{path}:{lineno}: {msg}"
        super().__init__(msg)


class EncodeError(DictionaryFileError, ValueError):
    """A key or value cannot be written as a single line."""


class DuplicateKeyError(DictionaryFileError, KeyError):
    """
    The key is already present, or its serialized text is already
    stored for a different key (`text` is set in that case).
    """
    def __init__(self, key: Any, *, text: Optional[str] = None) -> None:
        self.key = key
        self.text = text
        super().__init__(key)

    def __str__(self) -> str:
        if self.text is not None:
            return f"key {self.key!r} serializes to {self.text!r}, already used by another key"
        return f"key already present: {self.key!r}"


class KeyNotFoundError(DictionaryFileError, KeyError):
    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__(key)

    def __str__(self) -> str:
        return f"key not found: {self.key!r}"


class UseAfterDisposeError(DictionaryFileError, ValueError):
    """Operation attempted on a closed DictionaryFile."""


class StoreLockedError(DictionaryFileError, OSError):
    """The backing file is already owned by another DictionaryFile."""
