from __future__ import annotations
import logging
import os
from collections.abc import ItemsView, KeysView, ValuesView
from typing import Any, Dict, Iterator, List, MutableMapping, Optional, Tuple, TypeVar

from .errors import DecodeError, DuplicateKeyError, KeyNotFoundError, UseAfterDisposeError
from .progress import Progress, ProgressCallback
from .serialization import SerializationSettings
from .storage import LineFile

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class _ItemsView(ItemsView):
    def __iter__(self):
        yield from self._mapping._snapshot()


class _ValuesView(ValuesView):
    def __iter__(self):
        for _key, value in self._mapping._snapshot():
            yield value


class DictionaryFile(MutableMapping[K, V]):
    """
    A dict that mirrors every mutation to a line-oriented text file.

    The whole file is replayed into memory on open; reads never touch the disk.
    Writes update memory first, then the file. Each entry is one line,
    ``key<separator>value``, encoded with the configured SerializationSettings.
    With autoflush=False the file only changes on flush() or close().
    """
    def __init__(
        self,
        path: str,
        settings: Optional[SerializationSettings] = None,
        autoflush: bool = True,
        *,
        fsync: bool = False,
        lock: bool = True,
        encoding: str = "utf-8",
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.path = os.fspath(path)
        self._settings = settings if settings is not None else SerializationSettings()
        self._fs = LineFile(self.path, autoflush, fsync=fsync, encoding=encoding)
        self._progress = Progress(on_progress)
        self._data: Dict[K, V] = {}
        # Exact text of the stored line for each key
        self._rows: Dict[K, str] = {}
        # Serialized key text -> in-memory key; one line per key text on disk
        self._owners: Dict[str, K] = {}
        self._closed = True
        self._open(lock)

    def _open(self, lock: bool) -> None:
        """
        Acquire the file, then replay every line into memory.
        On any failure the file is released before the error propagates.
        """
        self._progress.emit("open.start", 0, self.path)
        self._fs.open_exclusive(lock)
        try:
            self._replay()
        except BaseException:
            self._fs.close()
            raise
        self._closed = False
        self._progress.emit("open.done", 100, f"{len(self._data)} entries")
        logger.debug("opened %s with %d entries", self.path, len(self._data))

    def _replay(self) -> None:
        total = len(self._fs)
        self._progress.emit("open.replay", 0)
        for lineno, line in enumerate(self._fs, 1):
            if not line:
                continue
            try:
                key, value = self._settings.decode(line)
            except DecodeError as e:
                raise DecodeError(str(e), path=self.path, lineno=lineno) from e
            if key in self._data:
                logger.debug("duplicate key %r at %s:%d", key, self.path, lineno)
                raise DuplicateKeyError(key)
            self._data[key] = value
            self._rows[key] = line
            self._owners[self._key_text(line)] = key
            self._progress.emit("open.replay", lineno * 100 / total)
        self._progress.emit("open.replay", 100)

    # ----- Properties -----

    @property
    def settings(self) -> SerializationSettings:
        return self._settings

    @property
    def autoflush(self) -> bool:
        return self._fs.autoflush

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def read_only(self) -> bool:
        self._check_open()
        return False

    # ----- Reads -----

    def __getitem__(self, key: K) -> V:
        self._check_open()
        try:
            return self._data[key]
        except KeyError:
            raise KeyNotFoundError(key) from None

    def try_get(self, key: K) -> Tuple[bool, Optional[V]]:
        """Return (True, value) if key is present, else (False, None)."""
        self._check_open()
        if key in self._data:
            return True, self._data[key]
        return False, None

    def __contains__(self, key: object) -> bool:
        self._check_open()
        return key in self._data

    def contains_item(self, key: K, value: V) -> bool:
        self._check_open()
        return key in self._data and self._data[key] == value

    def __len__(self) -> int:
        self._check_open()
        return len(self._data)

    def __iter__(self) -> Iterator[K]:
        self._check_open()
        return iter(list(self._data))

    def keys(self) -> KeysView:
        self._check_open()
        return KeysView(self)

    def items(self) -> ItemsView:
        self._check_open()
        return _ItemsView(self)

    def values(self) -> ValuesView:
        self._check_open()
        return _ValuesView(self)

    def copy_to(self, array: List[Any], index: int = 0) -> None:
        """Write (key, value) tuples into a pre-sized list starting at index."""
        self._check_open()
        if index < 0:
            raise ValueError(f"index must be non-negative, got {index}")
        items = self._snapshot()
        if index + len(items) > len(array):
            raise IndexError(f"{len(items)} entries do not fit into list of length {len(array)} at index {index}")
        array[index:index + len(items)] = items

    # ----- Writes -----

    def __setitem__(self, key: K, value: V) -> None:
        """Replace semantics: the old line is removed and a new one appended."""
        self._check_open()
        row = self._encode(key, value)
        self._discard(key)
        self._insert(key, value, row)

    def add(self, key: K, value: V) -> None:
        self._check_open()
        if key in self._data:
            raise DuplicateKeyError(key)
        self._insert(key, value, self._encode(key, value))

    def remove(self, key: K) -> bool:
        """Remove key from memory and its line from the file. Returns whether it was present."""
        self._check_open()
        return self._discard(key)

    def __delitem__(self, key: K) -> None:
        if not self.remove(key):
            raise KeyNotFoundError(key)

    def remove_item(self, key: K, value: V) -> bool:
        """Remove the entry only if key maps to exactly value."""
        self._check_open()
        if key not in self._data or self._data[key] != value:
            return False
        return self._discard(key)

    def clear(self) -> None:
        self._check_open()
        self._data.clear()
        self._rows.clear()
        self._owners.clear()
        self._fs.clear()

    def flush(self) -> None:
        self._check_open()
        self._fs.flush()

    def close(self) -> None:
        """Flush pending writes and release the file. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._fs.close()
        logger.debug("closed %s", self.path)

    def __enter__(self) -> "DictionaryFile[K, V]":
        self._check_open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        if self._closed:
            return f"<{type(self).__name__} {self.path!r} closed>"
        return f"<{type(self).__name__} {self.path!r} entries={len(self._data)}>"

    # ----- Helpers -----

    def _check_open(self) -> None:
        if self._closed:
            raise UseAfterDisposeError(f"operation on closed {type(self).__name__} ({self.path})")

    def _snapshot(self) -> List[Tuple[K, V]]:
        self._check_open()
        return list(self._data.items())

    def _key_text(self, row: str) -> str:
        return row.partition(self._settings.separator)[0]

    def _encode(self, key: K, value: V) -> str:
        """
        Encode an entry as a line, refusing a key whose text is already
        stored for a different key (e.g. 1 and "1" under STR).
        """
        skey = self._settings.encode_key(key)
        if skey in self._owners and self._owners[skey] != key:
            raise DuplicateKeyError(key, text=skey)
        return f"{skey}{self._settings.separator}{self._settings.encode_value(value)}"

    def _insert(self, key: K, value: V, row: str) -> None:
        self._data[key] = value
        self._rows[key] = row
        self._owners[self._key_text(row)] = key
        self._fs.append(row)

    def _discard(self, key: K) -> bool:
        if key not in self._data:
            return False
        del self._data[key]
        row = self._rows.pop(key)
        self._owners.pop(self._key_text(row), None)
        if not self._fs.remove(row):
            logger.warning("no line for key %r in %s", key, self.path)
        return True


class StrDictionaryFile(DictionaryFile[str, str]):
    """DictionaryFile with string keys and values, tab-separated."""
    def __init__(self, path: str, autoflush: bool = True, **options: Any) -> None:
        super().__init__(path, SerializationSettings(), autoflush, **options)
