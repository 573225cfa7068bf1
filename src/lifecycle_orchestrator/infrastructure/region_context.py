"""Shared "current region" state for provider clients."""

import threading
from contextlib import contextmanager
from typing import Callable, Iterator

from lifecycle_orchestrator.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)

RegionListener = Callable[[str], None]


class RegionContext:
    """Holds the region provider clients currently talk to.

    Created once per orchestrator and passed explicitly to everything that
    depends on the region. ``set_region`` and ``exclusive`` share one
    re-entrant lock: a switch requested while another thread holds the context
    exclusively blocks until that hold is released.
    """

    def __init__(self, region: str) -> None:
        if not region:
            raise ValueError("region must not be empty")
        self._region = region
        self._lock = threading.RLock()
        self._listeners: list[RegionListener] = []

    @property
    def region(self) -> str:
        return self._region

    def get_region(self) -> str:
        return self._region

    def set_region(self, region: str) -> None:
        """Switch the current region and notify listeners."""
        if not region:
            raise ValueError("region must not be empty")
        with self._lock:
            if region == self._region:
                return
            previous = self._region
            self._region = region
            logger.debug("Region switched from %s to %s", previous, region)
            for listener in list(self._listeners):
                listener(region)

    def add_listener(self, listener: RegionListener) -> None:
        """Register a callable invoked with the new region after every switch."""
        with self._lock:
            self._listeners.append(listener)

    @contextmanager
    def exclusive(self) -> Iterator["RegionContext"]:
        """Hold the context so no other thread can switch region."""
        with self._lock:
            yield self
