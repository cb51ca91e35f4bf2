"""Port interface for a notification delivery channel."""

from abc import ABC, abstractmethod

from queue_dispatch.domain.entities.notification import SendReceipt
from queue_dispatch.domain.value_objects.enums import Channel, NotificationPriority


class ChannelSender(ABC):
    @property
    @abstractmethod
    def channel(self) -> Channel:
        ...

    @abstractmethod
    async def send(self, recipient: str, message: str, priority: NotificationPriority) -> SendReceipt:
        """Deliver one message. Transport failures may raise; the caller wraps them."""
        ...
