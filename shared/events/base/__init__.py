"""
Messaging base classes and error types shared by every service.
"""

from abc import ABC, abstractmethod


class BrokerError(Exception):
    """Base class for broker failures"""


class BrokerConnectionError(BrokerError):
    """The broker could not be reached within the configured retries"""


class PublishError(BrokerError):
    """A message could not be serialized or durably written to the broker"""


class PermanentMessageError(Exception):
    """A message that can never be processed; it is dead-lettered, not redelivered"""


class EventHandler(ABC):
    """Abstract base class for event handlers"""

    @abstractmethod
    async def handle(self, payload: bytes) -> None:
        """Handle one delivered message.

        Returning normally acknowledges the message. Raising requeues it,
        unless the exception is a PermanentMessageError.
        """
        pass


__all__ = [
    "BrokerError",
    "BrokerConnectionError",
    "PublishError",
    "PermanentMessageError",
    "EventHandler",
]
