"""Port interface for notification rules, schedules and delivery records."""

from abc import ABC, abstractmethod

from queue_dispatch.domain.entities.notification import (
    NotificationOutcome,
    NotificationRule,
    ScheduledNotification,
)


class NotificationRepository(ABC):
    @abstractmethod
    async def get_rules(self, shop_id: int, active_only: bool = True) -> list[NotificationRule]:
        ...

    @abstractmethod
    async def save_schedule(self, shop_id: int, entries: list[ScheduledNotification]) -> str:
        """Persist schedule entries and return the schedule id."""
        ...

    @abstractmethod
    async def record_delivery(self, shop_id: int, outcome: NotificationOutcome) -> None:
        ...
