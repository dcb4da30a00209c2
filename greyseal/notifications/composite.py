"""Composite Notifier - Forward every call to several notifiers"""

import logging
from typing import Sequence

from .events import ProgressEvent
from .interface import NotifierInterface

logger = logging.getLogger(__name__)


class CompositeNotifier:
    """Fan out to child notifiers; one child raising does not stop the others or the ingestion"""

    def __init__(self, notifiers: Sequence[NotifierInterface]):
        self.notifiers = tuple(notifiers)

    def _forward(self, method: str, *args) -> None:
        for notifier in self.notifiers:
            try:
                getattr(notifier, method)(*args)
            except Exception as e:
                logger.warning(f"{type(notifier).__name__}.{method} failed: {e}")

    def start(self, resource_id: str, locator: str = "") -> None:
        self._forward("start", resource_id, locator)

    def notify(self, event: ProgressEvent) -> None:
        self._forward("notify", event)

    def finish(self, success: bool, message: str = "") -> None:
        self._forward("finish", success, message)
