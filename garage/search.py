"""Debounced search: only the last query typed within the delay is run."""

import logging
import threading
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DELAY = 0.3


class SearchSession(Generic[T]):
    """
    One logical search box.

    Each call to search() cancels the pending query and starts a new timer;
    the query runs once no new text has arrived for ``delay`` seconds. A
    query that was superseded while running has its results discarded.
    """

    def __init__(
        self,
        search_fn: Callable[[str], List[T]],
        on_results: Optional[Callable[[List[T]], None]] = None,
        delay: float = DEFAULT_DELAY,
    ):
        self.search_fn = search_fn
        self.on_results = on_results
        self.delay = delay
        self.query = ""
        self.results: List[T] = []
        self.is_searching = False

        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0

    def search(self, text: str) -> None:
        with self._lock:
            self._cancel_pending()
            self._generation += 1
            self.query = text
            if not text.strip():
                self.results = []
                self.is_searching = False
                publish = True
            else:
                self.is_searching = True
                self._timer = threading.Timer(
                    self.delay, self._run, args=(text, self._generation)
                )
                self._timer.daemon = True
                self._timer.start()
                publish = False
        if publish and self.on_results:
            self.on_results([])

    def clear(self) -> None:
        self.search("")

    def cancel(self) -> None:
        """Drop any pending query without touching the current results."""
        with self._lock:
            self._cancel_pending()
            self._generation += 1
            self.is_searching = False

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until the pending query (if any) has finished."""
        timer = self._timer
        if timer is not None:
            timer.join(timeout)

    def _cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _run(self, text: str, generation: int) -> None:
        if generation != self._generation:
            return
        results = self.search_fn(text)
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding results for superseded query %r", text)
                return
            self.results = results
            self.is_searching = False
        if self.on_results:
            self.on_results(results)
