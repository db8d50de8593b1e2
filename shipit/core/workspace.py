"""Mutual exclusion over the single shared git workspace."""

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

T = TypeVar("T")


class WorkspaceLock:
    """
    FIFO lock guarding the shared working directory.

    Callers take a ticket on arrival and are admitted strictly in ticket
    order, so tasks run in the order they asked for the workspace. The lock
    is not reentrant: the holder asking again is rejected instead of
    deadlocking on itself.
    """

    def __init__(self):
        self._condition = threading.Condition()
        self._next_ticket = 0
        self._serving = 0
        self._owner: Optional[int] = None

    @property
    def locked(self) -> bool:
        with self._condition:
            return self._owner is not None

    @property
    def waiting(self) -> int:
        """Number of callers queued behind the current holder."""
        with self._condition:
            queued = self._next_ticket - self._serving
            return queued - 1 if self._owner is not None else queued

    def acquire(self) -> None:
        me = threading.get_ident()
        with self._condition:
            if self._owner == me:
                raise RuntimeError("Workspace lock is not reentrant; the current task already holds it")
            ticket = self._next_ticket
            self._next_ticket += 1
            while ticket != self._serving or self._owner is not None:
                self._condition.wait()
            self._owner = me

    def release(self) -> None:
        with self._condition:
            if self._owner != threading.get_ident():
                raise RuntimeError("Workspace lock released by a thread that does not hold it")
            self._owner = None
            self._serving += 1
            self._condition.notify_all()

    @contextmanager
    def hold(self) -> Iterator[None]:
        """Hold the workspace for the duration of the with-block."""
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def run(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """
        Run fn while holding the workspace.

        Args:
            fn: Callable to run
            *args: Positional arguments for fn
            **kwargs: Keyword arguments for fn

        Returns:
            Whatever fn returns; exceptions propagate after release
        """
        with self.hold():
            return fn(*args, **kwargs)
