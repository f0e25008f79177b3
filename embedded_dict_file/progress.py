from __future__ import annotations
from typing import Any, Callable, Dict, Optional

ProgressCallback = Callable[[Dict[str, Any]], None]


class Progress:
    """
    Thin wrapper over an optional user callback.
    Events are plain dicts: {"phase": str, "pct": int, "msg": str}.
    """
    def __init__(self, callback: Optional[ProgressCallback] = None, *, step: int = 5) -> None:
        self._cb = callback
        self._step = max(1, int(step))
        self._last: Dict[str, int] = {}

    @property
    def enabled(self) -> bool:
        return self._cb is not None

    def emit(self, phase: str, pct: float, msg: str = "") -> None:
        if self._cb is None:
            return
        pct_i = max(0, min(100, int(pct)))
        prev = self._last.get(phase)
        if prev == pct_i:
            return
        # Throttle intermediate updates; 0% and 100% always go through
        if prev is not None and pct_i not in (0, 100) and pct_i - prev < self._step:
            return
        self._last[phase] = pct_i
        self._cb({"phase": phase, "pct": pct_i, "msg": msg})
