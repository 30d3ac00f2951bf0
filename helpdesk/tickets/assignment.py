"""Load-balanced assignee selection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from .errors import ConfigurationDefect
from .models import IssueDefinition, Ticket, User

logger = logging.getLogger(__name__)

NO_ENGINEERS_REASON = "No engineers defined for this issue type."


@dataclass(frozen=True, slots=True)
class AssignmentDecision:
    """Outcome of an assignee selection with its explanation."""

    user: User | None
    reason: str
    assignee_id: str | None = None
    loads: Mapping[str, int] = field(default_factory=dict)
    defect: ConfigurationDefect | None = None


def active_load(assignee_id: str, tickets: Iterable[Ticket]) -> int:
    """Count tickets owned by ``assignee_id`` that are neither Resolved nor Closed."""

    return sum(1 for ticket in tickets if ticket.assignee_id == assignee_id and ticket.status.is_open)


def count_active_loads(candidate_ids: Sequence[str], tickets: Iterable[Ticket]) -> dict[str, int]:
    snapshot = list(tickets)
    return {candidate: active_load(candidate, snapshot) for candidate in candidate_ids}


def select_assignee(
    issue: IssueDefinition,
    tickets: Iterable[Ticket],
    users: Sequence[User],
) -> AssignmentDecision:
    """Pick the least busy engineer for ``issue`` from an in-memory ticket snapshot."""

    loads = count_active_loads(issue.assignee_ids, tickets)
    return select_from_loads(issue, loads, users)


def select_from_loads(
    issue: IssueDefinition,
    loads: Mapping[str, int],
    users: Sequence[User],
) -> AssignmentDecision:
    """Pick the least busy engineer given pre-computed active loads.

    Ties resolve to the earliest entry in ``issue.assignee_ids``. When the
    primary engineer is passed over while busy, the reason says so.
    """

    if not issue.assignee_ids:
        return AssignmentDecision(user=None, reason=NO_ENGINEERS_REASON)

    candidates = [(candidate, loads.get(candidate, 0)) for candidate in issue.assignee_ids]
    winner_id, _ = min(candidates, key=lambda item: item[1])
    directory = {user.id: user for user in users}
    user = directory.get(winner_id)

    primary_id = issue.assignee_ids[0]
    primary_load = loads.get(primary_id, 0)
    if winner_id != primary_id and primary_load > 0:
        primary = directory.get(primary_id)
        primary_name = primary.name if primary is not None else primary_id
        reason = (
            f"Primary engineer ({primary_name}) is currently busy with {primary_load} active tasks. "
            "Re-routed for faster resolution."
        )
    else:
        winner_name = user.name if user is not None else winner_id
        reason = f"Assigned to {winner_name} based on current availability."

    defect: ConfigurationDefect | None = None
    if user is None:
        defect = ConfigurationDefect(
            f"Issue {issue.code} lists assignee '{winner_id}' which is not in the user directory"
        )
        logger.warning("%s", defect)

    return AssignmentDecision(
        user=user,
        reason=reason,
        assignee_id=winner_id,
        loads=dict(candidates),
        defect=defect,
    )
