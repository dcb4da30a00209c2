"""
Notifier Interface - Protocol every progress notifier satisfies
"""

from typing import Protocol, runtime_checkable

from .events import ProgressEvent


@runtime_checkable
class NotifierInterface(Protocol):
    """start/finish bracket one resource; notify may be called any number of times between"""

    def start(self, resource_id: str, locator: str = "") -> None:
        ...

    def notify(self, event: ProgressEvent) -> None:
        ...

    def finish(self, success: bool, message: str = "") -> None:
        ...


class NullNotifier:
    """Discards everything; the default when notifications are not configured"""

    def start(self, resource_id: str, locator: str = "") -> None:
        return None

    def notify(self, event: ProgressEvent) -> None:
        return None

    def finish(self, success: bool, message: str = "") -> None:
        return None
