"""
Result Stream

Push-based, replay-last-value channel of SaveResult values.

INVARIANTS:
    - Holds exactly one value; a push overwrites it, no history is kept
    - Subscribers receive the current value on subscribe, then every push,
      in the order the values were set
    - Once closed the stream is read-only
"""

import logging
import threading
from typing import Callable, List, Optional

from .results import SaveResult

logger = logging.getLogger(__name__)

Listener = Callable[[SaveResult], None]


class StreamClosedError(Exception):
    """Raised when pushing to a stream whose save has completed."""
    pass


class ResultStream:
    """
    Single-slot holder broadcasting SaveResult updates.

    Only the SaveCoordinator pushes; everyone else reads, subscribes
    or waits.
    """

    def __init__(self, initial: Optional[SaveResult] = None):
        self._value = initial
        self._listeners: List[Listener] = []
        self._closed = False
        # Re-entrant: listeners may read the stream while being notified
        self._cond = threading.Condition(threading.RLock())

    @property
    def value(self) -> Optional[SaveResult]:
        """The most recent value, or None before the first push."""
        with self._cond:
            return self._value

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener and replay the current value to it.

        The replay happens under the stream lock, so a concurrent push is
        delivered after it and the listener's last value is the stream's.

        Returns a callable that removes the listener again.
        """
        with self._cond:
            self._listeners.append(listener)
            if self._value is not None:
                self._notify(listener, self._value)

        def unsubscribe() -> None:
            with self._cond:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def push(self, value: SaveResult, *, close: bool = False) -> None:
        """Replace the current value and notify listeners, in push order."""
        with self._cond:
            if self._closed:
                raise StreamClosedError(
                    f"Cannot push {value.state.value}: stream already completed"
                )
            self._value = value
            if close:
                self._closed = True
            for listener in list(self._listeners):
                self._notify(listener, value)
            self._cond.notify_all()

    def _notify(self, listener: Listener, value: SaveResult) -> None:
        try:
            listener(value)
        except Exception:
            logger.exception(f"Result stream listener failed on {value.state.value}")

    def wait(self, timeout: Optional[float] = None) -> Optional[SaveResult]:
        """
        Block until the stream completes.

        Returns the final value, or the current one if the timeout elapses.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._closed, timeout=timeout)
            return self._value

    @classmethod
    def completed(cls, value: SaveResult) -> "ResultStream":
        """A stream that already holds its only value."""
        stream = cls(value)
        stream._closed = True
        return stream

    def __repr__(self) -> str:
        state = self._value.state.value if self._value else None
        return f"ResultStream(state={state}, closed={self._closed})"
