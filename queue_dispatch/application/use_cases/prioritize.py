"""PrioritizeUseCase — score tickets, bucket them, optionally write the buckets back."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from queue_dispatch.application.clock import Clock, utc_now
from queue_dispatch.application.collaborator import DEFAULT_TIMEOUT_SECONDS, guarded
from queue_dispatch.application.ports.ticket_repo import TicketFilters, TicketRepository
from queue_dispatch.application.scoping import load_ticket
from queue_dispatch.domain.entities.ticket import Ticket
from queue_dispatch.domain.errors import QueueError, parse_enum, validation_error
from queue_dispatch.domain.policies.prioritization import (
    CombinedWeights,
    PriorityScore,
    ScoringConfig,
    bucket_counts,
    rank_scores,
    score_ticket,
)
from queue_dispatch.domain.value_objects.enums import (
    PrioritizationStrategy,
    TicketPriority,
    TicketStatus,
)

logger = logging.getLogger(__name__)

@dataclass
class PrioritizationResult:
    strategy: PrioritizationStrategy
    scores: list[PriorityScore]
    counts: dict[TicketPriority, int]
    updated: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.scores)


class PrioritizeUseCase:
    def __init__(
        self,
        ticket_repo: TicketRepository,
        config: ScoringConfig | None = None,
        clock: Clock = utc_now,
        page_size: int = 200,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._tickets = ticket_repo
        self._config = config or ScoringConfig()
        self._clock = clock
        self._page_size = page_size
        self._timeout = timeout

    async def execute(
        self,
        shop_id: int,
        ticket_ids: list[int],
        strategy: PrioritizationStrategy | str,
        department_id: int | None = None,
        weights: CombinedWeights | None = None,
        apply: bool = True,
        revenue_cap: float | None = None,
    ) -> PrioritizationResult:
        """Score ``ticket_ids`` (or every WAITING ticket when empty).

        ``weights`` and ``revenue_cap`` override the configured defaults for this
        call only. Every ticket is loaded and checked before the first write, so a
        bad id or a terminal ticket rejects the whole request without side effects.
        Write-backs are per ticket: one that fails or loses a race is reported in
        ``skipped`` and the rest are still written.
        """
        op = "prioritize"
        parsed = parse_enum(PrioritizationStrategy, strategy, op, "strategy")
        config = self._config
        if weights is not None:
            config = replace(config, weights=weights)
        if revenue_cap is not None:
            config = replace(config, revenue_cap=revenue_cap)
        try:
            config.validate()
        except ValueError as e:
            raise validation_error(op, str(e)) from e

        if ticket_ids:
            tickets = []
            for ticket_id in dict.fromkeys(ticket_ids):
                ticket = await load_ticket(self._tickets, op, shop_id, ticket_id, self._timeout)
                if ticket.is_terminal():
                    raise validation_error(
                        op,
                        f"Ticket {ticket_id} is {ticket.status.value} and cannot be prioritized",
                        ticket_id=ticket_id,
                    )
                tickets.append(ticket)
        else:
            tickets = await self._waiting(op, shop_id, department_id)

        now = self._clock()
        scores = rank_scores([score_ticket(t, parsed, now, config) for t in tickets])
        result = PrioritizationResult(strategy=parsed, scores=scores, counts=bucket_counts(scores))

        if apply:
            by_id = {t.id: t for t in tickets}
            for s in scores:
                await self._write_bucket(op, by_id[s.ticket_id], s.bucket, result)

        logger.info(
            "Prioritized %d tickets for shop %s with %s (%d updated, %d skipped)",
            result.total,
            shop_id,
            parsed.value,
            len(result.updated),
            len(result.skipped),
        )
        return result

    async def _waiting(self, op: str, shop_id: int, department_id: int | None) -> list[Ticket]:
        filters = TicketFilters(
            shop_id=shop_id, statuses=[TicketStatus.WAITING], department_id=department_id
        )
        if self._page_size <= 0:
            raise validation_error(op, "Page size must be positive")
        tickets: list[Ticket] = []
        page = 1
        while True:
            batch = await guarded(
                op,
                self._tickets.get_paginated(filters, page, self._page_size),
                self._timeout,
                shop_id=shop_id,
            )
            tickets.extend(batch.items)
            if not batch.has_next or not batch.items:
                return tickets
            page += 1

    async def _write_bucket(
        self, op: str, ticket: Ticket, bucket: TicketPriority, result: PrioritizationResult
    ) -> None:
        if ticket.priority == bucket:
            return
        try:
            written = await guarded(
                op,
                self._tickets.update_if(
                    replace(ticket, priority=bucket), ticket.status, ticket.assigned_staff_id
                ),
                self._timeout,
                ticket_id=ticket.id,
            )
        except QueueError as e:
            logger.warning("Bucket for ticket %s not written: %s", ticket.id, e.message)
            result.skipped.append(ticket.id)
            return

        if written:
            result.updated.append(ticket.id)
        else:
            logger.warning("Ticket %s changed while prioritizing; bucket not written", ticket.id)
            result.skipped.append(ticket.id)
