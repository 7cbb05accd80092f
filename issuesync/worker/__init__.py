"""Queue worker that re-syncs issues named by webhook deliveries."""

from .consumer import NotificationWorker

__all__ = ["NotificationWorker"]
