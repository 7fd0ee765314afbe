"""
Provider-level concurrency control using semaphores.
Caps in-flight vision calls per provider across all submissions in the process.
"""
import logging
import os
import threading
from contextlib import contextmanager
from typing import Optional

logger = logging.getLogger(__name__)


class SlotTimeoutError(TimeoutError):
    """No concurrency slot freed up in time. Says nothing about the provider's health."""


GEMINI_MAX_CONCURRENT = int(os.getenv('GEMINI_MAX_CONCURRENT', '6'))
GROQ_MAX_CONCURRENT = int(os.getenv('GROQ_MAX_CONCURRENT', '2'))


class ConcurrencyGuard:
    """Semaphore wrapper with a bounded wait."""

    def __init__(self, name: str, max_concurrent: int):
        self.name = name
        self.max_concurrent = max(1, max_concurrent)
        self._semaphore = threading.BoundedSemaphore(self.max_concurrent)
        logger.debug(f"{name} concurrency guard initialized: max {self.max_concurrent} concurrent calls")

    @contextmanager
    def slot(self, timeout: Optional[float] = None):
        """
        Hold one slot for the duration of the block.

        Raises SlotTimeoutError when no slot frees up within `timeout` seconds.
        """
        acquired = self._semaphore.acquire(timeout=timeout) if timeout else self._semaphore.acquire()
        if not acquired:
            raise SlotTimeoutError(f"No free {self.name} slot within {timeout}s")
        try:
            logger.debug(f"{self.name} concurrency slot acquired")
            yield
        finally:
            self._semaphore.release()
            logger.debug(f"{self.name} concurrency slot released")
