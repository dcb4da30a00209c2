"""Console Notifier - One line per ingestion step on a terminal stream"""

import sys
import time
from typing import Optional, TextIO

from .events import ProgressEvent


class ConsoleNotifier:
    """Write ingestion progress for interactive CLI runs (stderr by default)"""

    def __init__(self, output: Optional[TextIO] = None, show_counts: bool = True):
        """
        Args:
            output: Stream to write to (sys.stderr at write time if None)
            show_counts: Append current/total to steps that count items
        """
        self.output = output
        self.show_counts = show_counts
        self._label = ""
        self._started: Optional[float] = None

    def _write(self, line: str) -> None:
        print(line, file=self.output or sys.stderr)

    def start(self, resource_id: str, locator: str = "") -> None:
        self._label = locator or resource_id
        self._started = time.monotonic()
        self._write(f"Ingesting {self._label}")

    def notify(self, event: ProgressEvent) -> None:
        if event.failed:
            self._write(f"  error: {event.error or event.message}")
            return
        # Intermediate counts are noise on a terminal; report each step once
        if event.total > 0 and 0 < event.current < event.total:
            return
        line = f"  {event.stage.value}: {event.message}"
        if self.show_counts and event.total > 0:
            line += f" ({event.current}/{event.total})"
        self._write(line)

    def finish(self, success: bool, message: str = "") -> None:
        elapsed = time.monotonic() - self._started if self._started is not None else 0.0
        status = "done" if success else "failed"
        self._write(f"  {status}: {message or self._label} in {elapsed:.1f}s")
        self._label = ""
        self._started = None
