"""Customer notification dispatch"""

from orderflow.notifications.dispatcher import NotificationDispatcher, NotificationResult

__all__ = ["NotificationDispatcher", "NotificationResult"]
