from .email_provider import EmailProvider, NotificationDeliveryError

__all__ = [
    "EmailProvider",
    "NotificationDeliveryError",
]
