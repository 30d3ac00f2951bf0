"""Which tickets a directory user may see, and the counts shown on their dashboard."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from .models import Ticket, User, UserRole
from .state import TicketStatus


class TicketView(str, Enum):
    """Ticket list filters offered to a user."""

    RELEVANT = "relevant"
    CREATED = "created"
    ASSIGNED = "assigned"
    TEAM = "team"


@dataclass(frozen=True, slots=True)
class TicketStats:
    total: int = 0
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    sla_breached: int = 0


def manages_assignee(ticket: Ticket, viewer: User, users: Sequence[User]) -> bool:
    if ticket.assignee_id is None:
        return False
    assignee = next((user for user in users if user.id == ticket.assignee_id), None)
    return assignee is not None and assignee.manager_id == viewer.id


def can_view(ticket: Ticket, viewer: User, users: Sequence[User]) -> bool:
    """Requester, assignee, the assignee's manager, or an administrator."""

    return (
        viewer.role == UserRole.ADMIN
        or viewer.id == ticket.requester_id
        or viewer.id == ticket.assignee_id
        or manages_assignee(ticket, viewer, users)
    )


def in_view(ticket: Ticket, viewer: User, view: TicketView, users: Sequence[User]) -> bool:
    if view is TicketView.CREATED:
        return ticket.requester_id == viewer.id
    if view is TicketView.ASSIGNED:
        return ticket.assignee_id == viewer.id
    if view is TicketView.TEAM:
        return manages_assignee(ticket, viewer, users)
    return can_view(ticket, viewer, users)


def dashboard_scope(ticket: Ticket, viewer: User, users: Sequence[User]) -> bool:
    """Tickets counted on ``viewer``'s dashboard, decided by role alone."""

    if viewer.role == UserRole.ADMIN:
        return True
    if viewer.role == UserRole.MANAGER:
        return ticket.assignee_id == viewer.id or manages_assignee(ticket, viewer, users)
    if viewer.role == UserRole.ASSIGNEE:
        return ticket.assignee_id == viewer.id
    return ticket.requester_id == viewer.id


def ticket_stats(tickets: Iterable[Ticket], viewer: User, users: Sequence[User]) -> TicketStats:
    scoped = [ticket for ticket in tickets if dashboard_scope(ticket, viewer, users)]
    return TicketStats(
        total=len(scoped),
        open=sum(1 for ticket in scoped if ticket.status.is_open),
        in_progress=sum(1 for ticket in scoped if ticket.status is TicketStatus.IN_PROGRESS),
        resolved=sum(1 for ticket in scoped if not ticket.status.is_open),
        sla_breached=sum(1 for ticket in scoped if (ticket.sla_breach_duration_hours or 0) > 0),
    )
