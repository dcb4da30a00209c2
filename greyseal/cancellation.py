"""
Cancellation - Deadline and cancel signal threaded through pipeline calls

Every blocking call in the ingestion and answer pipelines checks the context
first, so an aborted caller stops further backend calls promptly.
"""

import threading
import time
from typing import Optional

from greyseal.errors import OperationCancelled


class CancellationContext:
    """Optional deadline plus an explicit cancel event"""

    def __init__(self, timeout: Optional[float] = None, event: Optional[threading.Event] = None):
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self._event = event or threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when unbounded"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self, operation: str = "operation") -> None:
        """Raise OperationCancelled if cancelled or past the deadline"""
        if self.cancelled:
            raise OperationCancelled(f"{operation} cancelled")
        if self.expired:
            raise OperationCancelled(f"{operation} exceeded its deadline")


def ensure_context(ctx: Optional[CancellationContext]) -> CancellationContext:
    return ctx if ctx is not None else CancellationContext()
