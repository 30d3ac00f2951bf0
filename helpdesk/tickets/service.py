from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, Protocol, Sequence

from helpdesk.metrics import MetricsRegistry, metrics_registry as default_metrics_registry, register_default_metrics

from .assignment import AssignmentDecision, select_from_loads
from .catalog import ReferenceCatalog
from .eligibility import eligible_assignees
from .errors import NotFound, TicketServiceError, Unauthorized, ValidationError
from .matching import match_issue, resolve_application
from .models import Attachment, Comment, IssueDefinition, Priority, Ticket, TicketType, User
from .repository import TicketStore
from .sla import SlaEvaluation, apply_sla, escalation_contact, evaluate_sla
from .state import TicketAction, TicketStatus
from .visibility import TicketStats, TicketView, can_view, in_view, ticket_stats
from .workflow import TransitionPayload, apply_action, make_comment, open_ticket, transfer_candidates

logger = logging.getLogger(__name__)

SCREENSHOT_DESCRIPTION = "Issue described in screenshot."
SYSTEM_ACTOR_ID = "system"
SYSTEM_ACTOR_NAME = "System"


class EscalationHook(Protocol):
    """Called once when a ticket first becomes escalated."""

    def __call__(self, ticket: Ticket, manager: User | None) -> Awaitable[None]:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CreateTicketRequest:
    """Input for creating a ticket, typically produced by the triage chat.

    ``application_id`` and ``ai_summary`` come from the generative model's
    guess; ``issue_code`` skips matching when the requester picked an issue.
    """

    requester_id: str
    description: str = ""
    summary: str = ""
    ai_summary: str = ""
    application_id: str | None = None
    issue_code: str | None = None
    priority: Priority | None = None
    ticket_type: TicketType | None = None
    attachments: Sequence[Attachment] = ()


@dataclass(frozen=True, slots=True)
class MatchPreview:
    application_id: str | None
    issue: IssueDefinition | None
    assignment: AssignmentDecision | None


@dataclass(slots=True)
class _TicketLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    # Holder plus waiters; the entry is dropped when this reaches zero.
    users: int = 0


@dataclass(slots=True)
class TicketService:
    """High level orchestration for ticket lifecycle operations."""

    store: TicketStore
    catalog: ReferenceCatalog
    clock: Callable[[], datetime] = _utcnow
    metrics: MetricsRegistry = default_metrics_registry
    escalation_hook: EscalationHook | None = None
    _locks: dict[str, _TicketLock] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        register_default_metrics(self.metrics)

    @asynccontextmanager
    async def _serialised(self, ticket_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(ticket_id)
        if entry is None:
            entry = self._locks[ticket_id] = _TicketLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if not entry.users:
                del self._locks[ticket_id]

    async def get_ticket(self, ticket_id: str, *, viewer_id: str | None = None) -> Ticket:
        """Fetch a ticket; with ``viewer_id`` the user must be allowed to see it."""

        ticket = await self.store.get(ticket_id)
        if ticket is None:
            raise NotFound(f"Ticket {ticket_id} not found")
        if viewer_id is not None:
            viewer = self.catalog.require_user(viewer_id)
            if not can_view(ticket, viewer, self.catalog.users):
                raise Unauthorized(f"{viewer.name} may not view ticket {ticket_id}")
        return ticket

    async def list_tickets(
        self,
        *,
        status: TicketStatus | None = None,
        viewer_id: str | None = None,
        view: TicketView = TicketView.RELEVANT,
    ) -> list[Ticket]:
        tickets = await self.store.list_tickets(status=status)
        if viewer_id is None:
            return tickets
        viewer = self.catalog.require_user(viewer_id)
        return [ticket for ticket in tickets if in_view(ticket, viewer, view, self.catalog.users)]

    async def ticket_stats(self, viewer_id: str) -> TicketStats:
        viewer = self.catalog.require_user(viewer_id)
        return ticket_stats(await self.store.list_tickets(), viewer, self.catalog.users)

    async def _assign(self, issue: IssueDefinition) -> AssignmentDecision:
        loads = await self.store.count_open_by_assignee(issue.assignee_ids)
        return select_from_loads(issue, loads, self.catalog.users)

    def _resolve_issue(self, request: CreateTicketRequest, application_id: str | None) -> IssueDefinition:
        if request.issue_code:
            return self.catalog.require_issue(request.issue_code)
        issue = match_issue(self.catalog.issues, application_id, request.description, request.ai_summary)
        if issue is None:
            raise NotFound(f"No issue type is configured for application {application_id or 'unknown'}")
        return issue

    async def preview_match(
        self, *, description: str, ai_summary: str = "", application_id: str | None = None
    ) -> MatchPreview:
        resolved_app = resolve_application(application_id, self.catalog.applications)
        issue = match_issue(self.catalog.issues, resolved_app, description, ai_summary)
        assignment = await self._assign(issue) if issue is not None else None
        return MatchPreview(application_id=resolved_app, issue=issue, assignment=assignment)

    async def create_ticket(self, request: CreateTicketRequest) -> Ticket:
        requester = self.catalog.require_user(request.requester_id)
        description = (request.description or "").strip()
        if not description and not request.attachments:
            raise ValidationError("A description of the issue is required")

        application_id = resolve_application(request.application_id, self.catalog.applications)
        issue = self._resolve_issue(request, application_id)
        priority = request.priority or issue.priority
        ticket_type = request.ticket_type or issue.category
        decision = await self._assign(issue)
        window = self.catalog.sla_policy.window_for(issue, priority, ticket_type)
        summary = (request.summary or "").strip() or description or request.ai_summary.strip()

        ticket = open_ticket(
            requester=requester,
            issue=issue,
            application_id=application_id or issue.application_id,
            summary=summary,
            description=description or SCREENSHOT_DESCRIPTION,
            priority=priority,
            ticket_type=ticket_type,
            window=window,
            assignee=decision.user,
            now=self.clock(),
            routing_reason=decision.reason,
            attachments=request.attachments,
        )
        stored = await self.store.add(ticket)
        self.metrics.counter("tickets_created_total").inc()
        logger.info(
            "Created ticket %s for issue %s (assignee=%s): %s",
            stored.id,
            issue.code,
            stored.assignee_id,
            decision.reason,
        )
        return stored

    def _escalation_notice(self, ticket: Ticket, now: datetime) -> Comment:
        """Internal log entry appended when ``ticket`` first becomes escalated."""

        manager = escalation_contact(ticket, self.catalog.users)
        target = manager.name if manager is not None else "support management"
        return make_comment(
            SYSTEM_ACTOR_ID,
            SYSTEM_ACTOR_NAME,
            f"SYSTEM NOTIFICATION: SLA breached by {ticket.sla_breach_duration_hours}h. "
            f"Ticket escalated to {target}.",
            now,
        )

    async def transition(
        self,
        ticket_id: str,
        action: TicketAction,
        actor_id: str,
        payload: TransitionPayload | None = None,
    ) -> Ticket:
        """Apply ``action`` to the ticket and persist the result.

        Transitions on the same ticket are serialised; the store's version
        check catches writers outside this process.
        """

        async with self._serialised(ticket_id):
            try:
                actor = self.catalog.require_user(actor_id)
                current = await self.get_ticket(ticket_id)
                now = self.clock()
                updated = apply_action(current, action, actor, payload, users=self.catalog.users, now=now)
                refreshed = apply_sla(updated, evaluate_sla(updated, now))
                if refreshed is not None:
                    updated = refreshed
                if updated.is_escalated and not current.is_escalated:
                    updated.comments = [*updated.comments, self._escalation_notice(updated, now)]
                saved = await self.store.save(
                    updated,
                    expected_version=current.version,
                    new_comments=updated.comments[len(current.comments):],
                )
            except TicketServiceError as exc:
                self.metrics.counter("ticket_transition_failures_total").inc(labels={"error": type(exc).__name__})
                logger.info("Rejected %s on ticket %s by %s: %s", action.value, ticket_id, actor_id, exc)
                raise

        self.metrics.counter("ticket_transitions_total").inc(labels={"action": action.value})
        logger.info("Applied %s on ticket %s by %s -> %s", action.value, ticket_id, actor_id, saved.status.value)
        if saved.is_escalated and not current.is_escalated:
            await self._notify_escalation(saved)
        return saved

    def evaluate_sla(self, ticket: Ticket, now: datetime | None = None) -> SlaEvaluation:
        return evaluate_sla(ticket, now or self.clock())

    async def refresh_sla(self, ticket_id: str) -> Ticket:
        """Re-evaluate and persist the SLA fields of one ticket; no-op when unchanged.

        A growing breach duration on its own does not rewrite the ticket.
        """

        async with self._serialised(ticket_id):
            current = await self.get_ticket(ticket_id)
            now = self.clock()
            updated = apply_sla(current, evaluate_sla(current, now), refresh_breach=False)
            if updated is None:
                return current
            new_comments: list[Comment] = []
            if updated.is_escalated and not current.is_escalated:
                notice = self._escalation_notice(updated, now)
                updated.comments = [*current.comments, notice]
                new_comments.append(notice)
            saved = await self.store.save(updated, expected_version=current.version, new_comments=new_comments)

        if saved.is_escalated and not current.is_escalated:
            await self._notify_escalation(saved)
        return saved

    async def sweep(self) -> list[Ticket]:
        """Refresh SLA state of every open ticket; return the newly escalated ones."""

        escalated: list[Ticket] = []
        with self.metrics.time_distribution("sla_sweep_duration_seconds"):
            for ticket in await self.store.list_tickets():
                if not ticket.status.is_open:
                    continue
                try:
                    refreshed = await self.refresh_sla(ticket.id)
                except TicketServiceError as exc:
                    logger.warning("SLA refresh skipped for ticket %s: %s", ticket.id, exc)
                    continue
                if refreshed.is_escalated and not ticket.is_escalated:
                    escalated.append(refreshed)
        if escalated:
            logger.info("SLA sweep escalated %d tickets", len(escalated))
        return escalated

    async def _notify_escalation(self, ticket: Ticket) -> None:
        self.metrics.counter("sla_escalations_total").inc()
        manager = escalation_contact(ticket, self.catalog.users)
        logger.warning(
            "Ticket %s breached its SLA by %sh; escalated to %s",
            ticket.id,
            ticket.sla_breach_duration_hours,
            manager.id if manager is not None else "nobody",
        )
        if self.escalation_hook is not None:
            await self.escalation_hook(ticket, manager)

    def eligible_assignees(self, application_id: str) -> list[User]:
        application = self.catalog.require_application(application_id)
        return eligible_assignees(application, self.catalog.users)

    async def transfer_candidates(self, ticket_id: str, *, viewer_id: str | None = None) -> list[User]:
        ticket = await self.get_ticket(ticket_id, viewer_id=viewer_id)
        return transfer_candidates(ticket, self.catalog.users)
