"""RoundRobinPolicy — deterministic rotation over a fixed staff roster."""

from __future__ import annotations

from queue_dispatch.domain.entities.staff import StaffMember


def rotation_key(shop_id: int, department_id: int | None) -> str:
    """Counter key: one rotation cursor per (shop, department)."""
    return f"shop-{shop_id}|dept-{department_id if department_id is not None else 'all'}"


def pick_next(roster: list[StaffMember], counter: int) -> tuple[StaffMember, int]:
    """Deterministic round-robin pick from a fixed ordered roster.

    1. Order the roster by id so every engine instance sees the same sequence.
    2. Use *counter mod len(roster)* to select the index (wraps at the end).
    3. Return the chosen staff member and the advanced counter.

    Args:
        roster: non-empty list of eligible staff.
        counter: current rotation cursor, as returned by the counter store.

    Returns:
        (chosen_staff, new_counter)

    Raises:
        ValueError: if the roster is empty.
    """
    if not roster:
        raise ValueError("Cannot pick from an empty roster")

    ordered = sorted(roster, key=lambda s: s.id)
    chosen = ordered[counter % len(ordered)]

    return chosen, counter + 1
