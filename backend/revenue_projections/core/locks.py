# revenue_projections/core/locks.py
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from .errors import RecalculationInProgress


class RecalculationGuard:
    """
    Per-scenario, non-blocking mutex.

    A second caller for the same scenario is rejected right away with
    RecalculationInProgress instead of waiting for the first run.
    """

    def __init__(self) -> None:
        self._locks: Dict[int, threading.Lock] = {}
        self._registry = threading.Lock()

    def _lock_for(self, scenario_id: int) -> threading.Lock:
        with self._registry:
            lock = self._locks.get(scenario_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[scenario_id] = lock
            return lock

    def is_running(self, scenario_id: int) -> bool:
        return self._lock_for(scenario_id).locked()

    @contextmanager
    def hold(self, scenario_id: int) -> Iterator[None]:
        lock = self._lock_for(scenario_id)
        if not lock.acquire(blocking=False):
            raise RecalculationInProgress(scenario_id)
        try:
            yield
        finally:
            lock.release()


# process-wide guard shared by every ProjectionService
recalculation_guard = RecalculationGuard()
