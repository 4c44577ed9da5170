"""
Notifiers for goalboard.

The mutation coordinator reports failed background commits through a
notifier; a UI shell renders them as toasts.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from goalboard.logger import get_logger

logger = get_logger("notifiers")


class NotificationPriority(Enum):
    """Notification priority levels."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


@dataclass
class Notification:
    """A notification to be shown to the user."""
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    created_at: str = None
    goal_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now().isoformat()


class BaseNotifier(ABC):
    """Base class for all notifiers."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.enabled = self.config.get("enabled", True)

    @abstractmethod
    def send(self, notification: Notification) -> bool:
        """
        Send a notification.

        Returns:
            True if delivered, False otherwise.
        """

    @abstractmethod
    def get_name(self) -> str:
        """Return the notifier name."""

    def is_available(self) -> bool:
        return self.enabled


_LEVELS = {
    NotificationPriority.LOW: 10,      # DEBUG
    NotificationPriority.NORMAL: 20,   # INFO
    NotificationPriority.HIGH: 30,     # WARNING
    NotificationPriority.URGENT: 40,   # ERROR
}


class LogNotifier(BaseNotifier):
    """Writes notifications to the goalboard log."""

    def send(self, notification: Notification) -> bool:
        if not self.enabled:
            return False
        logger.log(
            _LEVELS[notification.priority],
            "%s: %s",
            notification.title,
            notification.message,
        )
        return True

    def get_name(self) -> str:
        return "log"


class CollectingNotifier(BaseNotifier):
    """Keeps every sent notification in memory for a UI shell to drain."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.sent: List[Notification] = []

    def send(self, notification: Notification) -> bool:
        if not self.enabled:
            return False
        self.sent.append(notification)
        return True

    def drain(self) -> List[Notification]:
        sent, self.sent = self.sent, []
        return sent

    def get_name(self) -> str:
        return "collecting"
