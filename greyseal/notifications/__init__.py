"""
Grey Seal Notifications - Ingestion progress reporting

Configured from the `notifications` section:

    notifications:
      console: {enabled: true, show_counts: true}
      log: {enabled: true, level: info}

An empty section means no notifications (NullNotifier).
"""

import logging
from typing import Any, Dict, List, Optional

from .events import IngestionStage, ProgressEvent
from .interface import NotifierInterface, NullNotifier
from .console import ConsoleNotifier
from .logging_notifier import LoggingNotifier
from .composite import CompositeNotifier

logger = logging.getLogger(__name__)

__all__ = [
    "IngestionStage",
    "ProgressEvent",
    "NotifierInterface",
    "NullNotifier",
    "ConsoleNotifier",
    "LoggingNotifier",
    "CompositeNotifier",
    "create_notifier_from_config",
]


def _log_level(name: Any) -> int:
    level = logging.getLevelName(str(name).upper())
    if isinstance(level, int):
        return level
    logger.warning(f"Unknown notifications log level {name!r}, using DEBUG")
    return logging.DEBUG


def create_notifier_from_config(section: Optional[Dict[str, Any]]) -> NotifierInterface:
    """Build the notifier described by the `notifications` config section"""
    if not section:
        return NullNotifier()

    notifiers: List[NotifierInterface] = []
    console = section.get("console") or {}
    if console.get("enabled", True):
        notifiers.append(ConsoleNotifier(show_counts=console.get("show_counts", True)))
    log = section.get("log") or {}
    if log.get("enabled", False):
        notifiers.append(LoggingNotifier(level=_log_level(log.get("level", "debug"))))

    if not notifiers:
        return NullNotifier()
    if len(notifiers) == 1:
        return notifiers[0]
    return CompositeNotifier(notifiers)
