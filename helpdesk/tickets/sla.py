"""SLA policy lookup and breach/escalation computation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, Sequence

from .models import IssueDefinition, Priority, SLARule, Ticket, TicketType, User
from .state import TicketStatus

DEFAULT_SLA_RULES: tuple[SLARule, ...] = (
    SLARule(Priority.CRITICAL, TicketType.INCIDENT, 4, auto_escalate=True, id="sla1"),
    SLARule(Priority.HIGH, TicketType.INCIDENT, 8, auto_escalate=True, id="sla2"),
    SLARule(Priority.MEDIUM, TicketType.INCIDENT, 24, auto_escalate=False, id="sla3"),
    SLARule(Priority.LOW, TicketType.SERVICE_REQUEST, 48, auto_escalate=False, id="sla4"),
)

# Used when neither the issue nor the (priority, type) table defines a window.
PRIORITY_FALLBACK_HOURS: dict[Priority, float] = {
    Priority.CRITICAL: 2,
    Priority.HIGH: 4,
    Priority.MEDIUM: 8,
    Priority.LOW: 24,
}

# Upper bounds of elapsed/window for SLA levels 1-4; anything beyond is level 5.
SLA_LEVEL_THRESHOLDS: tuple[float, ...] = (0.5, 0.75, 1.0, 1.5)

_SECONDS_PER_HOUR = 3600.0

# Smallest reportable breach; a breach of a few seconds must not round to zero.
MIN_BREACH_HOURS = 0.01


@dataclass(frozen=True, slots=True)
class SlaWindow:
    hours: float
    auto_escalate: bool


@dataclass(frozen=True, slots=True)
class SlaEvaluation:
    """Derived SLA state of a ticket at a point in time."""

    sla_level: int
    is_escalated: bool
    sla_breach_duration_hours: float | None
    elapsed_hours: float
    work_elapsed_hours: float | None
    window_hours: float

    @property
    def breached(self) -> bool:
        return self.sla_breach_duration_hours is not None


class SLAPolicy:
    """Static (priority, ticket type) -> resolution window table."""

    def __init__(self, rules: Iterable[SLARule] = DEFAULT_SLA_RULES) -> None:
        self._rules: dict[tuple[Priority, TicketType], SLARule] = {}
        for rule in rules:
            self._rules.setdefault((rule.priority, rule.ticket_type), rule)

    @property
    def rules(self) -> tuple[SLARule, ...]:
        return tuple(self._rules.values())

    def rule_for(self, priority: Priority, ticket_type: TicketType) -> SLARule | None:
        return self._rules.get((priority, ticket_type))

    def resolution_window_hours(self, priority: Priority, ticket_type: TicketType) -> float:
        rule = self.rule_for(priority, ticket_type)
        if rule is not None:
            return float(rule.resolution_time_hours)
        return float(PRIORITY_FALLBACK_HOURS[priority])

    def auto_escalate(self, priority: Priority, ticket_type: TicketType) -> bool:
        rule = self.rule_for(priority, ticket_type)
        return bool(rule and rule.auto_escalate)

    def window_for(
        self,
        issue: IssueDefinition | None,
        priority: Priority,
        ticket_type: TicketType,
    ) -> SlaWindow:
        """Resolution window stamped onto a new ticket.

        The issue's own ``sla_hours`` wins over the generic table.
        """

        if issue is not None and issue.sla_hours is not None:
            hours = float(issue.sla_hours)
        else:
            hours = self.resolution_window_hours(priority, ticket_type)
        return SlaWindow(hours=hours, auto_escalate=self.auto_escalate(priority, ticket_type))


def _hours_between(start: datetime, end: datetime) -> float:
    return max(0.0, (end - start).total_seconds() / _SECONDS_PER_HOUR)


def sla_clock_end(ticket: Ticket, now: datetime) -> datetime:
    """Moment the SLA clock stops: resolution/closure once reached, otherwise ``now``."""

    if ticket.status in (TicketStatus.RESOLVED, TicketStatus.CLOSED):
        if ticket.resolved_at is not None:
            return ticket.resolved_at
        if ticket.closed_at is not None:
            return ticket.closed_at
    return now


def sla_level_for(elapsed_hours: float, window_hours: float) -> int:
    if window_hours <= 0:
        return len(SLA_LEVEL_THRESHOLDS) + 1
    ratio = elapsed_hours / window_hours
    for level, bound in enumerate(SLA_LEVEL_THRESHOLDS, start=1):
        if ratio <= bound:
            return level
    return len(SLA_LEVEL_THRESHOLDS) + 1


def evaluate_sla(ticket: Ticket, now: datetime) -> SlaEvaluation:
    """Compute SLA level, breach duration and escalation for ``ticket`` at ``now``."""

    end = sla_clock_end(ticket, now)
    elapsed = _hours_between(ticket.created_at, end)
    work_elapsed = _hours_between(ticket.work_started_at, end) if ticket.work_started_at else None

    window = float(ticket.sla_hours)
    breach = max(round(elapsed - window, 2), MIN_BREACH_HOURS) if elapsed > window else None
    escalated = ticket.is_escalated or (
        ticket.auto_escalate and breach is not None and ticket.status.is_open
    )

    return SlaEvaluation(
        sla_level=sla_level_for(elapsed, window),
        is_escalated=escalated,
        sla_breach_duration_hours=breach,
        elapsed_hours=round(elapsed, 2),
        work_elapsed_hours=round(work_elapsed, 2) if work_elapsed is not None else None,
        window_hours=window,
    )


def apply_sla(ticket: Ticket, evaluation: SlaEvaluation, *, refresh_breach: bool = True) -> Ticket | None:
    """Return a copy of ``ticket`` carrying ``evaluation``, or ``None`` when nothing changes.

    The breach duration of an overdue ticket grows with every evaluation.
    With ``refresh_breach=False`` a growing duration alone is not a change:
    it is written only when the ticket first breaches, stops breaching, or
    when its level or escalation flag moves. Periodic sweeps use this so an
    overdue ticket is not rewritten on every pass.
    """

    changes: dict[str, object] = {}
    if evaluation.sla_level != ticket.sla_level:
        changes["sla_level"] = evaluation.sla_level
    if evaluation.is_escalated != ticket.is_escalated:
        changes["is_escalated"] = evaluation.is_escalated
    breach_moved = (evaluation.sla_breach_duration_hours is None) != (ticket.sla_breach_duration_hours is None)
    if evaluation.sla_breach_duration_hours != ticket.sla_breach_duration_hours and (
        refresh_breach or breach_moved or changes
    ):
        changes["sla_breach_duration_hours"] = evaluation.sla_breach_duration_hours
    if not changes:
        return None
    return replace(ticket, **changes)


def escalation_contact(ticket: Ticket, users: Sequence[User]) -> User | None:
    """Manager of the current assignee, who should see an escalated ticket."""

    if ticket.assignee_id is None:
        return None
    directory = {user.id: user for user in users}
    assignee = directory.get(ticket.assignee_id)
    if assignee is None or assignee.manager_id is None:
        return None
    return directory.get(assignee.manager_id)
