"""
Cancellation context handed to the kernel by front-ends.

The kernel installs the caller's context for the duration of an evaluation.
Only blocking built-ins (the jsonrpc module) observe it.
"""

from __future__ import annotations

import threading
import time
import weakref

from .errors import CancelledError


class Context:
    """
    Cancellation token with an optional deadline.

    A child context is cancelled when its parent is cancelled or when its own
    deadline passes.
    """

    def __init__(self, parent: Context | None = None, deadline: float | None = None):
        self.parent = parent
        self._deadline = deadline
        self._event = threading.Event()
        self._children: weakref.WeakSet[Context] = weakref.WeakSet()
        self._lock = threading.Lock()
        if parent is not None:
            with parent._lock:
                parent._children.add(self)
            if parent.cancelled:
                self._event.set()

    @classmethod
    def background(cls) -> Context:
        """Context that is never cancelled."""
        return cls()

    def with_cancel(self) -> Context:
        return Context(parent=self)

    def with_timeout(self, seconds: float) -> Context:
        return Context(parent=self, deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        self._event.set()
        with self._lock:
            children = list(self._children)
        for child in children:
            child.cancel()

    @property
    def deadline(self) -> float | None:
        """Earliest deadline along the parent chain (monotonic clock)."""
        deadlines = []
        ctx: Context | None = self
        while ctx is not None:
            if ctx._deadline is not None:
                deadlines.append(ctx._deadline)
            ctx = ctx.parent
        return min(deadlines) if deadlines else None

    @property
    def cancelled(self) -> bool:
        ctx: Context | None = self
        while ctx is not None:
            if ctx._event.is_set():
                return True
            ctx = ctx.parent
        deadline = self.deadline
        return deadline is not None and time.monotonic() >= deadline

    def timeout(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until the context is done or timeout seconds pass.

        Returns:
            True if the context is done
        """
        end = None if timeout is None else time.monotonic() + timeout
        while not self.cancelled:
            limit = self.timeout()
            if end is not None:
                left = end - time.monotonic()
                if left <= 0:
                    return False
                limit = left if limit is None else min(limit, left)
            self._event.wait(limit)
        return True

    def check(self) -> None:
        """Raise CancelledError if the context is done."""
        if self.cancelled:
            raise CancelledError("context cancelled")


__all__ = ["Context"]
