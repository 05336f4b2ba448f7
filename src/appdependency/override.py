"""Tokens that keep a dependency override in place.

An override lasts as long as its token: calling :meth:`DependencyOverride.cancel`,
leaving a ``with`` block, or dropping the last reference to the token restores the
dependency that was in place before. The restore runs at most once.
"""

import threading
from contextlib import contextmanager
from typing import Callable, Iterator

__all__ = ["DependencyOverride", "preview"]


class DependencyOverride:
    """Handle on an active override.

    Example:
        >>> with Application.override("network", FakeNetwork()):
        ...     run_checks()
        >>> # original network dependency restored here
    """

    def __init__(self, cancel_action: Callable[[], None]):
        self._cancel_action = cancel_action
        self._lock = threading.Lock()
        self._has_cancelled = False

    @property
    def has_cancelled(self) -> bool:
        return self._has_cancelled

    def cancel(self):
        """Restore the dependency that was in place when the override started.

        Calling this more than once has no further effect.
        """
        with self._lock:
            if self._has_cancelled:
                return
            self._has_cancelled = True
        self._cancel_action()

    def __enter__(self) -> "DependencyOverride":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.cancel()

    def __del__(self):
        # __init__ may not have completed
        if hasattr(self, "_has_cancelled"):
            self.cancel()

    def __repr__(self) -> str:
        state = "cancelled" if self._has_cancelled else "active"
        return f"<DependencyOverride {state}>"


@contextmanager
def preview(*overrides: DependencyOverride) -> Iterator[tuple[DependencyOverride, ...]]:
    """Keep `overrides` active for the duration of a block.

    On exit the overrides are cancelled in reverse order, so overrides of the same
    dependency unwind back to the original.

    Example:
        >>> with preview(
        ...     Application.override("clock", FixedClock()),
        ...     Application.override("network", FakeNetwork()),
        ... ):
        ...     render_report()
    """
    try:
        yield overrides
    finally:
        for override in reversed(overrides):
            override.cancel()
