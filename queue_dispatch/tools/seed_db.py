"""Seed a demo shop (staff, customers, notification rules) from a JSON file.

Usage:
    python -m queue_dispatch.tools.seed_db
    python -m queue_dispatch.tools.seed_db --file data/demo_shop.json
    python -m queue_dispatch.tools.seed_db --drop  # drop existing data first
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from queue_dispatch.adapters.persistence.database import async_session_factory
from queue_dispatch.adapters.persistence.models import (
    CustomerModel,
    NotificationDeliveryModel,
    NotificationRuleModel,
    PaymentModel,
    RoundRobinStateModel,
    ScheduledNotificationModel,
    StaffModel,
    TicketModel,
    TicketServiceModel,
)
from queue_dispatch.domain.entities.notification import NotificationRule, RuleCondition, RuleTrigger
from queue_dispatch.domain.errors import QueueError
from queue_dispatch.domain.policies.notification_rules import validate_rule
from queue_dispatch.domain.value_objects.enums import (
    Channel,
    ConditionOperator,
    NotificationPriority,
    NotificationType,
    Recurrence,
    RuleKind,
    TicketStatus,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)


async def _drop_data(session: AsyncSession) -> None:
    """Delete all data in FK order."""
    for model in [
        NotificationDeliveryModel,
        ScheduledNotificationModel,
        PaymentModel,
        TicketServiceModel,
        TicketModel,
        NotificationRuleModel,
        RoundRobinStateModel,
        CustomerModel,
        StaffModel,
    ]:
        await session.execute(delete(model))
    await session.commit()
    logger.info("Dropped all existing data")


def _parse_rule(shop_id: int, index: int, raw: dict) -> NotificationRule:
    """Build and validate a rule so bad seed data fails before touching the database."""
    t = raw.get("trigger", {})
    rule = NotificationRule(
        id=None,
        shop_id=shop_id,
        name=raw["name"],
        kind=RuleKind(raw["kind"]),
        trigger=RuleTrigger(
            time=t.get("time"),
            recurrence=Recurrence(t["recurrence"]) if t.get("recurrence") else None,
            weekday=t.get("weekday"),
            day_of_month=t.get("day_of_month"),
            status=TicketStatus(t["status"]) if t.get("status") else None,
            event=t.get("event"),
            delay_minutes=t.get("delay_minutes", 0),
        ),
        channels=[Channel(c) for c in raw.get("channels", [])],
        conditions=[
            RuleCondition(c["field"], ConditionOperator(c["operator"]), c.get("value"))
            for c in raw.get("conditions", [])
        ],
        template=raw.get("template"),
        active=raw.get("active", True),
        priority=NotificationPriority(raw.get("priority", "medium")),
        notification_type=NotificationType(raw.get("notification_type", "status-update")),
    )
    validate_rule(rule, index, "seed_rules")
    return rule


def _rule_model(rule: NotificationRule) -> NotificationRuleModel:
    t = rule.trigger
    trigger = {
        "time": t.time,
        "recurrence": t.recurrence.value if t.recurrence else None,
        "weekday": t.weekday,
        "day_of_month": t.day_of_month,
        "status": t.status.value if t.status else None,
        "event": t.event,
        "delay_minutes": t.delay_minutes,
    }
    return NotificationRuleModel(
        shop_id=rule.shop_id,
        name=rule.name,
        kind=rule.kind.value,
        trigger={k: v for k, v in trigger.items() if v is not None},
        conditions=[
            {"field": c.field, "operator": c.operator.value, "value": c.value} for c in rule.conditions
        ],
        channels=[c.value for c in rule.channels],
        template=rule.template,
        active=rule.active,
        priority=rule.priority.value,
        notification_type=rule.notification_type.value,
    )


async def seed(data_file: Path, drop: bool = False) -> dict[str, int]:
    """Main seed function. Returns counts of seeded records."""
    data = json.loads(data_file.read_text(encoding="utf-8"))
    shop_id = int(data["shop_id"])
    rules = [_parse_rule(shop_id, i, r) for i, r in enumerate(data.get("rules", []))]
    counts = {"staff": 0, "customers": 0, "rules": 0}

    async with async_session_factory() as session:
        if drop:
            await _drop_data(session)

        for sd in data.get("staff", []):
            existing = await session.execute(
                select(StaffModel).where(StaffModel.shop_id == shop_id, StaffModel.name == sd["name"])
            )
            if existing.scalar_one_or_none():
                logger.debug("Staff '%s' already exists, skipping", sd["name"])
                continue
            session.add(
                StaffModel(
                    shop_id=shop_id,
                    name=sd["name"],
                    department_id=sd.get("department_id"),
                    skills=sorted(sd.get("skills", [])),
                    on_duty=sd.get("on_duty", True),
                    seniority=int(sd.get("seniority", 0)),
                )
            )
            counts["staff"] += 1

        for cd in data.get("customers", []):
            existing = await session.execute(select(CustomerModel).where(CustomerModel.name == cd["name"]))
            if existing.scalar_one_or_none():
                logger.debug("Customer '%s' already exists, skipping", cd["name"])
                continue
            session.add(
                CustomerModel(
                    name=cd["name"],
                    phone=cd.get("phone"),
                    email=cd.get("email"),
                    push_token=cd.get("push_token"),
                )
            )
            counts["customers"] += 1

        for rule in rules:
            existing = await session.execute(
                select(NotificationRuleModel).where(
                    NotificationRuleModel.shop_id == shop_id, NotificationRuleModel.name == rule.name
                )
            )
            if existing.scalar_one_or_none():
                logger.debug("Rule '%s' already exists, skipping", rule.name)
                continue
            session.add(_rule_model(rule))
            counts["rules"] += 1

        await session.commit()

    logger.info(
        "Seed complete for shop %s: %d staff, %d customers, %d rules",
        shop_id, counts["staff"], counts["customers"], counts["rules"],
    )
    return counts


async def _verify_data() -> None:
    """Print sanity checks after seeding."""
    async with async_session_factory() as session:
        staff = (await session.execute(select(StaffModel))).scalars().all()
        customers = await session.scalar(select(func.count()).select_from(CustomerModel))
        rules = (await session.execute(select(NotificationRuleModel))).scalars().all()

        print(f"\n{'='*50}")
        print("SEED VERIFICATION")
        print(f"{'='*50}")
        print(f"Staff:     {len(staff)} ({sum(1 for s in staff if s.on_duty)} on duty)")
        print(f"Customers: {customers}")
        print(f"Rules:     {len(rules)}")

        departments: dict[int | None, int] = {}
        for s in staff:
            departments[s.department_id] = departments.get(s.department_id, 0) + 1
        print(f"Staff per department: {departments}")

        kinds: dict[str, int] = {}
        for r in rules:
            kinds[r.kind] = kinds.get(r.kind, 0) + 1
        print(f"Rule kinds: {kinds}")
        print(f"{'='*50}\n")


def main():
    parser = argparse.ArgumentParser(description="Seed the queue dispatch database with a demo shop")
    parser.add_argument(
        "--file", type=str, default="data/demo_shop.json",
        help="JSON seed file (default: data/demo_shop.json)",
    )
    parser.add_argument(
        "--drop", action="store_true",
        help="Drop existing data before seeding",
    )
    parser.add_argument(
        "--verify-only", action="store_true",
        help="Only run verification, don't seed",
    )
    args = parser.parse_args()

    data_file = Path(args.file)
    if not args.verify_only and not data_file.exists():
        logger.error("Seed file not found: %s", data_file)
        sys.exit(1)

    if args.verify_only:
        asyncio.run(_verify_data())
        return

    async def run_all():
        try:
            await seed(data_file, drop=args.drop)
        except QueueError as e:
            logger.error("Invalid seed data: %s", e)
            sys.exit(1)
        await _verify_data()

    asyncio.run(run_all())


if __name__ == "__main__":
    main()
