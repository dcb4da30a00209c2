"""Logging Notifier - Progress as log records, for workers without a terminal"""

import logging
from typing import Optional

from .events import ProgressEvent

progress_logger = logging.getLogger("greyseal.progress")


class LoggingNotifier:
    """Log progress at a configurable level; failures always at WARNING"""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level
        self._resource_id: Optional[str] = None

    def start(self, resource_id: str, locator: str = "") -> None:
        self._resource_id = resource_id
        progress_logger.log(self.level, f"[{resource_id}] started {locator}".rstrip())

    def notify(self, event: ProgressEvent) -> None:
        resource_id = event.resource_id or self._resource_id
        progress_logger.log(logging.WARNING if event.failed else self.level, f"[{resource_id}] {event.describe()}")

    def finish(self, success: bool, message: str = "") -> None:
        progress_logger.log(
            self.level if success else logging.WARNING,
            f"[{self._resource_id}] {'finished' if success else 'failed'}: {message}"
        )
        self._resource_id = None
