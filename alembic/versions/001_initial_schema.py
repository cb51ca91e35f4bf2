"""Initial schema — staff, customers, tickets, payments, notifications.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Staff
    op.create_table(
        "staff",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("shop_id", sa.Integer, nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("department_id", sa.Integer, nullable=True),
        sa.Column("skills", ARRAY(sa.String(50)), nullable=False, server_default="{}"),
        sa.Column("on_duty", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("seniority", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("idx_staff_shop_department", "staff", ["shop_id", "department_id"])

    # Customers
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(200), nullable=True),
        sa.Column("push_token", sa.String(500), nullable=True),
    )

    # Tickets
    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("shop_id", sa.Integer, nullable=False),
        sa.Column("customer_id", sa.Integer, sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("queue_number", sa.Integer, nullable=False),
        sa.Column("service_day", sa.Date, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="waiting"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="normal"),
        sa.Column("customer_tier", sa.String(20), nullable=True),
        sa.Column("department_id", sa.Integer, nullable=True),
        sa.Column("estimated_wait_minutes", sa.Integer, nullable=True),
        sa.Column("actual_wait_minutes", sa.Integer, nullable=True),
        sa.Column("assigned_staff_id", sa.Integer, sa.ForeignKey("staff.id"), nullable=True),
        sa.Column("served_by_staff_id", sa.Integer, sa.ForeignKey("staff.id"), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column("called_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "uq_tickets_shop_day_number",
        "tickets",
        ["shop_id", "service_day", "queue_number"],
        unique=True,
    )
    op.create_index("idx_tickets_shop_status", "tickets", ["shop_id", "status"])
    op.create_index("idx_tickets_shop_created", "tickets", ["shop_id", "created_at"])
    op.create_index("idx_tickets_assigned_staff", "tickets", ["assigned_staff_id"])

    # Ticket service lines
    op.create_table(
        "ticket_services",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "ticket_id",
            sa.Integer,
            sa.ForeignKey("tickets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("service_id", sa.Integer, nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Float, nullable=False, server_default="0"),
    )
    op.create_index("idx_ticket_services_ticket", "ticket_services", ["ticket_id"])

    # Payments
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "ticket_id",
            sa.Integer,
            sa.ForeignKey("tickets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="paid"),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_payments_ticket", "payments", ["ticket_id"])

    # Notification rules
    op.create_table(
        "notification_rules",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("shop_id", sa.Integer, nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("trigger", JSONB, nullable=False, server_default="{}"),
        sa.Column("conditions", JSONB, nullable=False, server_default="[]"),
        sa.Column("channels", ARRAY(sa.String(10)), nullable=False, server_default="{}"),
        sa.Column("template", sa.Text, nullable=True),
        sa.Column("active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column(
            "notification_type", sa.String(30), nullable=False, server_default="status-update"
        ),
    )
    op.create_index("idx_notification_rules_shop", "notification_rules", ["shop_id", "active"])

    # Scheduled notifications
    op.create_table(
        "scheduled_notifications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("schedule_id", sa.String(64), nullable=False),
        sa.Column("shop_id", sa.Integer, nullable=False),
        sa.Column(
            "rule_id",
            sa.Integer,
            sa.ForeignKey("notification_rules.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("rule_name", sa.String(200), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("channels", ARRAY(sa.String(10)), nullable=False, server_default="{}"),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "ticket_id",
            sa.Integer,
            sa.ForeignKey("tickets.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index(
        "idx_scheduled_notifications_schedule", "scheduled_notifications", ["schedule_id"]
    )
    op.create_index(
        "idx_scheduled_notifications_due", "scheduled_notifications", ["shop_id", "scheduled_at"]
    )

    # Delivery log
    op.create_table(
        "notification_deliveries",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("shop_id", sa.Integer, nullable=False),
        sa.Column(
            "ticket_id",
            sa.Integer,
            sa.ForeignKey("tickets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("notification_type", sa.String(30), nullable=False),
        sa.Column("channel", sa.String(10), nullable=False),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column("message_id", sa.String(200), nullable=True),
        sa.Column("error", sa.Text, nullable=True),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column(
            "sent_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index(
        "idx_notification_deliveries_ticket", "notification_deliveries", ["ticket_id"]
    )

    # Round Robin State
    op.create_table(
        "round_robin_state",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("rr_key", sa.String(500), unique=True, nullable=False),
        sa.Column("counter", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("round_robin_state")
    op.drop_table("notification_deliveries")
    op.drop_table("scheduled_notifications")
    op.drop_table("notification_rules")
    op.drop_table("payments")
    op.drop_table("ticket_services")
    op.drop_table("tickets")
    op.drop_table("customers")
    op.drop_table("staff")
