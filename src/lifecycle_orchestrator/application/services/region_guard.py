"""Run mutations that are only valid in the home region."""

import threading
from contextlib import AbstractContextManager
from typing import Callable, Optional, TypeVar

from lifecycle_orchestrator.infrastructure.logging.logger import get_logger
from lifecycle_orchestrator.infrastructure.region_context import RegionContext

logger = get_logger(__name__)

T = TypeVar("T")

# Used by with_home_region when the caller does not supply its own lock.
_PROCESS_REGION_LOCK = threading.RLock()


def with_home_region(
    current_region_provider: Callable[[], str],
    home_region: str,
    switch_region: Callable[[str], None],
    operation: Callable[[], T],
    lock: Optional[AbstractContextManager] = None,
) -> T:
    """
    Run ``operation`` with the region switched to ``home_region``.

    The whole compare/switch/run/restore sequence happens under ``lock``, so
    no other region switch can interleave. The prior region is restored on
    every exit path, including when ``operation`` raises. Concurrent callers
    block until the lock is free.
    """
    with lock if lock is not None else _PROCESS_REGION_LOCK:
        saved_region = current_region_provider()
        switched = saved_region != home_region
        if switched:
            logger.debug("Switching from %s to home region %s", saved_region, home_region)
            switch_region(home_region)
        try:
            return operation()
        finally:
            if switched:
                logger.debug("Restoring region %s after home region operation", saved_region)
                switch_region(saved_region)


class HomeRegionGuard:
    """Serialises home-region-only operations over a shared ``RegionContext``."""

    def __init__(self, region_context: RegionContext, home_region_provider: Callable[[], str]) -> None:
        self._region_context = region_context
        self._home_region_provider = home_region_provider
        self._home_region: Optional[str] = None

    @property
    def home_region(self) -> str:
        """Home region, looked up once and cached."""
        if self._home_region is None:
            self._home_region = self._home_region_provider()
            logger.debug("Home region resolved to %s", self._home_region)
        return self._home_region

    def run(self, operation: Callable[[], T]) -> T:
        """Run ``operation`` in the home region, restoring the current region afterwards."""
        context = self._region_context
        return with_home_region(
            context.get_region,
            self.home_region,
            context.set_region,
            operation,
            lock=context.exclusive(),
        )
