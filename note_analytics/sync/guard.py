"""Overlap guard for long-running operations."""

import threading
from collections.abc import Generator
from contextlib import contextmanager


class OperationInProgressError(RuntimeError):
    """Raised when an operation starts while another of its kind is running."""

    def __init__(self, operation: str) -> None:
        """Initialize the error.

        Args:
            operation: Name of the operation that is already running.
        """
        self.operation = operation
        super().__init__(f"{operation} is already in progress")


class OperationGuard:
    """Non-blocking mutual exclusion for one kind of operation.

    The guard belongs to the object that owns the operation, so two
    independent services never block each other.
    """

    def __init__(self, operation: str) -> None:
        self._operation = operation
        self._lock = threading.Lock()

    @property
    def operation(self) -> str:
        """Name of the guarded operation."""
        return self._operation

    @property
    def busy(self) -> bool:
        """True while an operation holds the guard."""
        return self._lock.locked()

    @contextmanager
    def hold(self) -> Generator[None]:
        """Hold the guard for the duration of the block.

        Raises:
            OperationInProgressError: If the guard is already held.
        """
        if not self._lock.acquire(blocking=False):
            raise OperationInProgressError(self._operation)
        try:
            yield
        finally:
            self._lock.release()
