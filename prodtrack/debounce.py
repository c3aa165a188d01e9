from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

TimerFactory = Callable[[float, Callable[[], None]], Any]


def _thread_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class Debounced:
    """Delay-and-coalesce wrapper around a side-effecting callable.

    Every call cancels the pending invocation and schedules a new one with
    only the latest arguments. A ``delay`` of zero calls straight through.
    ``timer_factory(delay, callback)`` must start a timer and return an object
    with ``cancel()``.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        delay: float,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self.func = func
        self.delay = delay
        self._timer_factory = timer_factory or _thread_timer
        self._lock = threading.Lock()
        self._timer: Any = None
        self._generation = 0
        self._args: Optional[Tuple[Tuple[Any, ...], Dict[str, Any]]] = None

    @property
    def pending(self) -> bool:
        return self._args is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        if self.delay <= 0:
            self.func(*args, **kwargs)
            return
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._args = (args, kwargs)
            self._generation += 1
            generation = self._generation
            self._timer = self._timer_factory(self.delay, lambda: self._fire(generation))

    def _take(self, generation: Optional[int] = None) -> Optional[Tuple[Tuple[Any, ...], Dict[str, Any]]]:
        with self._lock:
            # A timer that lost the race against a newer call must not fire it early.
            if generation is not None and generation != self._generation:
                return None
            call = self._args
            self._args = None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            return call

    def _fire(self, generation: Optional[int] = None) -> None:
        call = self._take(generation)
        if call is not None:
            args, kwargs = call
            self.func(*args, **kwargs)

    def flush(self) -> None:
        self._fire()

    def cancel(self) -> None:
        self._take()


class KeyedDebouncer:
    """One :class:`Debounced` per key, so writes to different keys never cancel each other.

    A key's wrapper is dropped once its call has run and nothing new is pending.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        delay: float,
        key: Callable[..., Hashable],
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self.func = func
        self.delay = delay
        self.key = key
        self._timer_factory = timer_factory
        # Re-entrant: with a zero delay the call runs, and evicts, inside __call__.
        self._lock = threading.RLock()
        self._wrappers: Dict[Hashable, Debounced] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._wrappers)

    def _run(self, slot: Hashable, *args: Any, **kwargs: Any) -> None:
        try:
            self.func(*args, **kwargs)
        finally:
            with self._lock:
                wrapper = self._wrappers.get(slot)
                if wrapper is not None and not wrapper.pending:
                    del self._wrappers[slot]

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        slot = self.key(*args, **kwargs)
        with self._lock:
            wrapper = self._wrappers.get(slot)
            if wrapper is None:
                wrapper = Debounced(
                    lambda *a, **kw: self._run(slot, *a, **kw), self.delay, self._timer_factory
                )
                self._wrappers[slot] = wrapper
            wrapper(*args, **kwargs)

    @property
    def pending_keys(self):
        with self._lock:
            return [slot for slot, wrapper in self._wrappers.items() if wrapper.pending]

    def flush_all(self) -> None:
        with self._lock:
            wrappers = list(self._wrappers.values())
        for wrapper in wrappers:
            wrapper.flush()

    def cancel_all(self) -> None:
        with self._lock:
            wrappers = list(self._wrappers.values())
            self._wrappers.clear()
        for wrapper in wrappers:
            wrapper.cancel()
