from __future__ import annotations
import logging
import os
from typing import IO, Iterator, List, Optional

from .errors import DecodeError, StoreLockedError

if os.name == "nt":
    import msvcrt
else:
    import fcntl

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
TMP_SUFFIX = ".tmp"


class LineFile:
    """
    Ordered list of text lines mirrored to a file.

    Lines are held in memory. Appends since the last flush are appended to the
    file; any removal or clear forces a full rewrite via temp file + os.replace.
    With autoflush every mutation is flushed immediately.
    """
    def __init__(self, path: str, autoflush: bool = True, *, fsync: bool = False, encoding: str = "utf-8") -> None:
        self.path = os.fspath(path)
        self.autoflush = autoflush
        self.fsync = fsync
        self.encoding = encoding
        self._lines: List[str] = []
        self._pending: List[str] = []
        self._needs_rewrite = False
        # Last line on disk has no trailing newline; the next append must add one
        self._missing_eol = False
        self._lock_fh: Optional[IO[bytes]] = None
        self._opened = False

    # ----- lifecycle -----

    def open_exclusive(self, lock: bool = True) -> None:
        """Acquire the sidecar lock (if requested) and load existing lines."""
        parent = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(parent, exist_ok=True)
        if lock:
            self._acquire_lock()
        try:
            if not os.path.exists(self.path):
                with open(self.path, "a", encoding=self.encoding):
                    pass
            self._lines = list(self._read_lines())
        except BaseException:
            self._release_lock()
            raise
        self._pending = []
        self._needs_rewrite = False
        self._opened = True
        logger.debug("opened %s (%d lines)", self.path, len(self._lines))

    def close(self) -> None:
        if not self._opened:
            return
        try:
            self.flush()
        finally:
            self._opened = False
            self._release_lock()
            logger.debug("closed %s", self.path)

    @property
    def dirty(self) -> bool:
        return self._needs_rewrite or bool(self._pending)

    # ----- line operations -----

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._lines))

    def __len__(self) -> int:
        return len(self._lines)

    def append(self, line: str) -> None:
        self._check_line(line)
        self._lines.append(line)
        if not self._needs_rewrite:
            self._pending.append(line)
        self._maybe_flush()

    def remove(self, line: str) -> bool:
        """Remove the first line equal to `line`. Returns False if none matched."""
        try:
            self._lines.remove(line)
        except ValueError:
            return False
        self._mark_rewrite()
        self._maybe_flush()
        return True

    def clear(self) -> None:
        self._lines.clear()
        self._mark_rewrite()
        self._maybe_flush()

    def flush(self) -> None:
        if self._needs_rewrite:
            self._rewrite()
        elif self._pending:
            self._append_pending()
        self._pending = []
        self._needs_rewrite = False

    # ----- internals -----

    def _maybe_flush(self) -> None:
        if self.autoflush:
            self.flush()

    def _mark_rewrite(self) -> None:
        self._needs_rewrite = True
        self._pending = []

    @staticmethod
    def _check_line(line: str) -> None:
        if "\n" in line or "\r" in line:
            raise ValueError(f"line must not contain line breaks: {line!r}")

    def _read_lines(self) -> Iterator[str]:
        """
        Yield stored lines without their line endings (LF or CRLF).
        Lines are split on b"\\n" before decoding, so the encoding must be ASCII-compatible.
        """
        self._missing_eol = False
        with open(self.path, "rb") as f:
            for lineno, raw in enumerate(f, 1):
                if raw.endswith(b"\n"):
                    raw = raw[:-1]
                else:
                    self._missing_eol = True
                if raw.endswith(b"\r"):
                    raw = raw[:-1]
                try:
                    yield raw.decode(self.encoding)
                except UnicodeDecodeError as e:
                    raise DecodeError(f"invalid {self.encoding} data: {e}", path=self.path, lineno=lineno) from e

    def _sync(self, f: IO[str]) -> None:
        f.flush()
        if self.fsync:
            os.fsync(f.fileno())

    def _append_pending(self) -> None:
        with open(self.path, "a", encoding=self.encoding, newline="\n") as f:
            if self._missing_eol:
                f.write("\n")
            for line in self._pending:
                f.write(line + "\n")
            self._sync(f)
        self._missing_eol = False
        logger.debug("appended %d lines to %s", len(self._pending), self.path)

    def _rewrite(self) -> None:
        tmp_path = self.path + TMP_SUFFIX
        with open(tmp_path, "w", encoding=self.encoding, newline="\n") as f:
            for line in self._lines:
                f.write(line + "\n")
            self._sync(f)
        self.replace_file(tmp_path)
        self._missing_eol = False
        logger.debug("rewrote %s (%d lines)", self.path, len(self._lines))

    def replace_file(self, tmp_path: str) -> None:
        """Atomically move tmp_path over the data file; fsync the directory when requested."""
        os.replace(tmp_path, self.path)
        if self.fsync and os.name != "nt":
            dir_fd = os.open(os.path.dirname(os.path.abspath(self.path)), os.O_RDONLY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)

    def _acquire_lock(self) -> None:
        lock_path = self.path + LOCK_SUFFIX
        fh = open(lock_path, "a+b")
        try:
            if os.name == "nt":
                fh.seek(0)
                msvcrt.locking(fh.fileno(), msvcrt.LK_NBLCK, 1)
            else:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            fh.close()
            raise StoreLockedError(f"{self.path} is locked by another owner") from e
        self._lock_fh = fh

    def _release_lock(self) -> None:
        fh = self._lock_fh
        if fh is None:
            return
        self._lock_fh = None
        try:
            if os.name == "nt":
                fh.seek(0)
                msvcrt.locking(fh.fileno(), msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        finally:
            fh.close()
