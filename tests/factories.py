"""Builders for domain objects shared across the test modules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from helpdesk.tickets.models import IssueDefinition, Priority, Ticket, TicketType, User, UserRole
from helpdesk.tickets.state import TicketStatus

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for deterministic SLA arithmetic."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_ticket(
    *,
    ticket_id: str = "TKT-00000001",
    status: TicketStatus = TicketStatus.NEW,
    assignee_id: str | None = "u7",
    requester_id: str = "u3",
    priority: Priority = Priority.HIGH,
    sla_hours: float = 4.0,
    auto_escalate: bool = True,
    created_at: datetime = T0,
    **overrides,
) -> Ticket:
    values = dict(
        id=ticket_id,
        requester_id=requester_id,
        requester_name="Arjun Mehta",
        application_id="IT",
        ticket_type=TicketType.INCIDENT,
        issue_code="IT-NET-001",
        issue_name="Network Issue",
        summary="Network down",
        description="Network down on ward 3",
        status=status,
        priority=priority,
        created_at=created_at,
        updated_at=created_at,
        sla_hours=sla_hours,
        auto_escalate=auto_escalate,
        assignee_id=assignee_id,
        assigned_at=created_at if assignee_id else None,
    )
    values.update(overrides)
    return Ticket(**values)


def make_issue(assignee_ids: tuple[str, ...], **overrides) -> IssueDefinition:
    values = dict(
        code="APP-001",
        name="Application Issue",
        application_id="APP",
        category=TicketType.INCIDENT,
        priority=Priority.HIGH,
        assignee_ids=assignee_ids,
    )
    values.update(overrides)
    return IssueDefinition(**values)


def make_user(user_id: str, name: str | None = None, role: UserRole = UserRole.ASSIGNEE, **overrides) -> User:
    return User(id=user_id, name=name or user_id.upper(), role=role, **overrides)
