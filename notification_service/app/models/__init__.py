from .notification import NotificationKind, NotificationLog

__all__ = [
    "NotificationKind",
    "NotificationLog",
]
