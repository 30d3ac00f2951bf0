"""Ticket creation and lifecycle transitions.

Every function here is pure with respect to its inputs: ``apply_action``
returns a new :class:`Ticket` and never touches the one it was given, so a
rejected action leaves the caller's copy exactly as it was.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Sequence
from uuid import uuid4

from .errors import NotFound, Unauthorized, ValidationError
from .models import ASSIGNABLE_ROLES, Attachment, Comment, IssueDefinition, Priority, Ticket, TicketType, User, UserRole
from .sla import SlaWindow
from .state import TicketAction, TicketStateMachine, TicketStatus

INTERNAL_MARKERS = ("INTERNAL", "SYSTEM")
DEFAULT_RESOLUTION_NOTE = "No detailed remarks provided."
CREATION_LOG = "Ticket created and initialized. Status set to Yet to Start."

_EDITOR_ACTIONS = frozenset(
    {
        TicketAction.START_WORK,
        TicketAction.AWAIT_USER,
        TicketAction.RESOLVE,
        TicketAction.REOPEN,
        TicketAction.TRANSFER,
    }
)
_REQUESTER_ACTIONS = frozenset({TicketAction.CONFIRM, TicketAction.REJECT})


@dataclass(frozen=True, slots=True)
class TransitionPayload:
    """Free-form input accompanying an action.

    ``text`` carries the resolution note, rejection reason or comment body;
    ``assignee_id`` names the transfer target.
    """

    text: str = ""
    assignee_id: str | None = None


def new_ticket_id() -> str:
    return f"TKT-{uuid4().hex[:8].upper()}"


def is_internal_text(text: str) -> bool:
    return any(marker in text for marker in INTERNAL_MARKERS)


def make_comment(author_id: str, author_name: str, text: str, created_at: datetime) -> Comment:
    return Comment(
        id=f"cmt-{uuid4().hex[:12]}",
        author_id=author_id,
        author_name=author_name,
        text=text,
        created_at=created_at,
        is_internal=is_internal_text(text),
    )


def open_ticket(
    *,
    requester: User,
    issue: IssueDefinition,
    application_id: str,
    summary: str,
    description: str,
    priority: Priority,
    ticket_type: TicketType,
    window: SlaWindow,
    assignee: User | None,
    now: datetime,
    routing_reason: str = "",
    attachments: Sequence[Attachment] = (),
    ticket_id: str | None = None,
) -> Ticket:
    """Create a ticket in its initial state with SLA parameters stamped."""

    return Ticket(
        id=ticket_id or new_ticket_id(),
        requester_id=requester.id,
        requester_name=requester.name,
        requester_phone=requester.phone,
        application_id=application_id,
        ticket_type=ticket_type,
        issue_code=issue.code,
        issue_name=issue.name,
        summary=summary,
        description=description,
        status=TicketStateMachine.initial_state(),
        priority=priority,
        created_at=now,
        updated_at=now,
        sla_hours=window.hours,
        auto_escalate=window.auto_escalate,
        assignee_id=assignee.id if assignee is not None else None,
        assigned_at=now if assignee is not None else None,
        sla_level=1,
        is_escalated=False,
        routing_reason=routing_reason,
        comments=[make_comment(requester.id, requester.name, CREATION_LOG, now)],
        attachments=tuple(attachments),
    )


def is_manager_of_assignee(ticket: Ticket, actor: User, users: Sequence[User]) -> bool:
    if actor.role == UserRole.MANAGER:
        return True
    assignee = next((user for user in users if user.id == ticket.assignee_id), None)
    return assignee is not None and assignee.manager_id == actor.id


def can_edit(ticket: Ticket, actor: User, users: Sequence[User]) -> bool:
    """Assignee, their manager, or an administrator."""

    return (
        actor.id == ticket.assignee_id
        or actor.role == UserRole.ADMIN
        or is_manager_of_assignee(ticket, actor, users)
    )


def can_close(ticket: Ticket, actor: User, users: Sequence[User]) -> bool:
    """Requester, the assignee's manager, or an administrator."""

    return (
        actor.id == ticket.requester_id
        or actor.role == UserRole.ADMIN
        or is_manager_of_assignee(ticket, actor, users)
    )


def authorize(ticket: Ticket, action: TicketAction, actor: User, users: Sequence[User]) -> None:
    if action in _EDITOR_ACTIONS and not can_edit(ticket, actor, users):
        raise Unauthorized(f"{actor.name} may not {action.value.replace('_', ' ')} ticket {ticket.id}")
    if action in _REQUESTER_ACTIONS and not can_close(ticket, actor, users):
        raise Unauthorized(f"{actor.name} may not {action.value} the resolution of ticket {ticket.id}")


def transfer_candidates(ticket: Ticket, users: Sequence[User]) -> list[User]:
    return [user for user in users if user.role in ASSIGNABLE_ROLES and user.id != ticket.assignee_id]


def _user_name(user_id: str | None, users: Sequence[User], default: str = "Unassigned") -> str:
    if user_id is None:
        return default
    user = next((candidate for candidate in users if candidate.id == user_id), None)
    return user.name if user is not None else user_id


def _resolve_transfer_target(ticket: Ticket, payload: TransitionPayload, users: Sequence[User]) -> User:
    target_id = (payload.assignee_id or "").strip()
    if not target_id:
        raise ValidationError("A transfer target is required")
    if target_id == ticket.assignee_id:
        raise ValidationError(f"Ticket {ticket.id} is already assigned to {target_id}")
    target = next((user for user in users if user.id == target_id), None)
    if target is None:
        raise NotFound(f"User {target_id} not found")
    if target.role not in ASSIGNABLE_ROLES:
        raise ValidationError(f"{target.name} cannot be assigned tickets")
    return target


def apply_action(
    ticket: Ticket,
    action: TicketAction,
    actor: User,
    payload: TransitionPayload | None = None,
    *,
    users: Sequence[User],
    now: datetime,
) -> Ticket:
    """Apply ``action`` by ``actor`` and return the resulting ticket."""

    payload = payload or TransitionPayload()
    target = TicketStateMachine.target_state(action, ticket.status)
    authorize(ticket, action, actor, users)

    text = (payload.text or "").strip()
    if action is TicketAction.REJECT and not text:
        raise ValidationError("A rejection reason is required")
    if action is TicketAction.COMMENT and not text:
        raise ValidationError("Comment text is required")
    transfer_target = _resolve_transfer_target(ticket, payload, users) if action is TicketAction.TRANSFER else None

    updated = replace(ticket, status=target, updated_at=now, comments=list(ticket.comments))

    def log(message: str) -> None:
        updated.comments.append(make_comment(actor.id, actor.name, message, now))

    if action is TicketAction.START_WORK:
        if updated.work_started_at is None:
            updated.work_started_at = now
        log(f"{actor.name} started working on this ticket.")
    elif action is TicketAction.AWAIT_USER:
        message = f"{actor.name} is waiting on {ticket.requester_name} for more information."
        log(f"{message}\nRemarks: {text}" if text else message)
    elif action is TicketAction.RESOLVE:
        note = text or DEFAULT_RESOLUTION_NOTE
        updated.resolved_at = now
        updated.actual_resolution_hours = round((now - ticket.created_at).total_seconds() / 3600.0, 2)
        log(f"MARKED AS RESOLVED by {actor.name}: {note}")
        log(f"SYSTEM NOTIFICATION: Email sent to user {ticket.requester_name} regarding resolution.")
    elif action is TicketAction.CONFIRM:
        updated.closed_at = now
        log(f"Ticket closed by {actor.name} (Confirmation).")
    elif action is TicketAction.REJECT:
        updated.resolved_at = None
        updated.actual_resolution_hours = None
        log(f"RESOLUTION REJECTED / REOPENED by {actor.name}.\nRemarks: {text}")
        log(
            "SYSTEM NOTIFICATION: Reopen notification sent to assignee: "
            f"{_user_name(ticket.assignee_id, users)}."
        )
    elif action is TicketAction.REOPEN:
        updated.resolved_at = None
        updated.actual_resolution_hours = None
        log(f"Ticket Reopened by {actor.name}.")
    elif action is TicketAction.TRANSFER:
        assert transfer_target is not None
        previous = _user_name(ticket.assignee_id, users)
        updated.assignee_id = transfer_target.id
        updated.assigned_at = now
        log(f"Ticket transferred from {previous} to {transfer_target.name}.")
    elif action is TicketAction.COMMENT:
        log(text)

    return updated
