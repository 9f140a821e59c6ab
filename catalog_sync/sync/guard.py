# catalog_sync/sync/guard.py
from __future__ import annotations

from contextlib import contextmanager


class ChangeGuard:
    """
    Set while the engine itself is writing rows (to the store or to the grid).
    Row-change notifications arriving while it is set are the engine's own echoes and
    must not start another sync. Nested holds keep it set until the outermost exits.
    """

    def __init__(self) -> None:
        self._depth = 0

    @property
    def active(self) -> bool:
        return self._depth > 0

    @contextmanager
    def hold(self):
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
