"""Port interface for the read-only staff directory."""

from abc import ABC, abstractmethod

from queue_dispatch.domain.entities.staff import StaffMember


class StaffDirectory(ABC):
    @abstractmethod
    async def get_by_id(self, staff_id: int) -> StaffMember | None:
        ...

    @abstractmethod
    async def find(
        self,
        shop_id: int,
        department_id: int | None = None,
        on_duty: bool | None = None,
    ) -> list[StaffMember]:
        """Staff of the shop with ``current_load`` filled in."""
        ...
