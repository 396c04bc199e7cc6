"""Coalesce rapid writes to the same record into one write after a quiet interval."""

import logging
import threading
from collections import OrderedDict
from typing import Callable, Dict, Hashable, List, MutableMapping, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 1.0


class DebouncedWriter:
    """
    Keyed debouncer.

    Each `submit` replaces the pending write for its key and restarts that
    key's timer; only the latest write runs once the key has been quiet for
    `delay` seconds. At most one write per key runs at a time, in submission
    order. `flush` returns only after every pending and in-flight write has
    finished. Failures raised inside a timer thread are logged and kept in
    `failures` for the caller to surface.
    """

    def __init__(self, delay: float = DEFAULT_DELAY_SECONDS):
        self.delay = max(0.0, float(delay))
        self.failures: List[Exception] = []
        self._pending: "OrderedDict[Hashable, Callable[[], object]]" = OrderedDict()
        self._timers: Dict[Hashable, threading.Timer] = {}
        self._generations: Dict[Hashable, int] = {}
        self._in_flight: Set[Hashable] = set()
        self._cond = threading.Condition()

    def submit(self, key: Hashable, write: Callable[[], object]) -> None:
        with self._cond:
            timer = self._timers.pop(key, None)
            if timer is not None:
                timer.cancel()
            self._pending.pop(key, None)
            self._pending[key] = write
            generation = self._generations.get(key, 0) + 1
            self._generations[key] = generation
            timer = threading.Timer(self.delay, self._fire, args=(key, generation))
            timer.daemon = True
            self._timers[key] = timer
            timer.start()

    def _claim(self, key: Hashable, generation: Optional[int] = None):
        """Take the pending write for `key` once no earlier write for it is running."""
        with self._cond:
            self._cond.wait_for(lambda: key not in self._in_flight)
            if generation is not None and self._generations.get(key) != generation:
                return None
            timer = self._timers.pop(key, None)
            if timer is not None:
                timer.cancel()
            write = self._pending.pop(key, None)
            if write is not None:
                self._in_flight.add(key)
            return write

    def _release(self, key: Hashable) -> None:
        with self._cond:
            self._in_flight.discard(key)
            self._cond.notify_all()

    def _fire(self, key: Hashable, generation: int) -> None:
        write = self._claim(key, generation)
        if write is None:
            return
        try:
            write()
        except Exception as exc:
            logger.exception(f"Debounced write for {key!r} failed")
            with self._cond:
                self.failures.append(exc)
        finally:
            self._release(key)

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._pending)

    @property
    def in_flight(self) -> int:
        with self._cond:
            return len(self._in_flight)

    def flush(self) -> int:
        """
        Run every pending write now, oldest first, then wait for writes
        already started by a timer. Errors propagate.
        """
        count = 0
        while True:
            with self._cond:
                if not self._pending:
                    break
                key = next(iter(self._pending))
            write = self._claim(key)
            if write is None:
                continue
            try:
                write()
            finally:
                self._release(key)
            count += 1
        with self._cond:
            self._cond.wait_for(lambda: not self._in_flight)
        return count

    def cancel(self) -> int:
        """Drop pending writes without running them."""
        with self._cond:
            for timer in self._timers.values():
                timer.cancel()
            dropped = len(self._pending)
            self._timers.clear()
            self._pending.clear()
        return dropped

    def pop_failures(self) -> List[Exception]:
        with self._cond:
            failures, self.failures = self.failures, []
        return failures


def session_writer(state: MutableMapping, delay: float = DEFAULT_DELAY_SECONDS, key: str = "writer") -> DebouncedWriter:
    """Writer owned by one session's state; created on first use."""
    writer = state.get(key)
    if writer is None:
        writer = DebouncedWriter(delay)
        state[key] = writer
    return writer
