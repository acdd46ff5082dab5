"""Admission control for child processes."""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import Iterator


logger = logging.getLogger(__name__)


class AdmissionRejected(Exception):
    """Raised when the queue is full and a job cannot be accepted."""


class AdmissionController:
    """Bound how many jobs run and wait at the same time.

    At most ``max_concurrent`` jobs hold a slot; up to ``max_queued`` more
    may block waiting for one.  Any job beyond that is rejected at once
    instead of piling up threads and processes on the host.
    """

    def __init__(self, max_concurrent: int = 4, max_queued: int = 16) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.max_queued = max_queued
        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._lock = threading.Lock()
        self._admitted = 0

    @property
    def admitted(self) -> int:
        """Jobs currently running or waiting."""
        with self._lock:
            return self._admitted

    @contextlib.contextmanager
    def slot(self) -> Iterator[None]:
        with self._lock:
            if self._admitted >= self.max_concurrent + self.max_queued:
                logger.warning(
                    "Rejecting job: %d admitted (limit %d running + %d queued)",
                    self._admitted,
                    self.max_concurrent,
                    self.max_queued,
                )
                raise AdmissionRejected("Execution queue is full; try again later")
            self._admitted += 1
        try:
            self._slots.acquire()
            try:
                yield
            finally:
                self._slots.release()
        finally:
            with self._lock:
                self._admitted -= 1
