from dataclasses import astuple
from datetime import timedelta

import pytest

from helpdesk.tickets.errors import InvalidTransition, NotFound, Unauthorized, ValidationError
from helpdesk.tickets.models import Attachment, Priority, TicketType
from helpdesk.tickets.sla import SlaWindow
from helpdesk.tickets.state import TicketAction, TicketStatus
from helpdesk.tickets.workflow import (
    CREATION_LOG,
    TransitionPayload,
    apply_action,
    is_internal_text,
    open_ticket,
    transfer_candidates,
)

from tests.factories import T0, make_ticket

LATER = T0 + timedelta(hours=2)


@pytest.fixture
def act(catalog):
    def _act(ticket, action, actor_id, text="", assignee_id=None, now=LATER):
        return apply_action(
            ticket,
            action,
            catalog.require_user(actor_id),
            TransitionPayload(text=text, assignee_id=assignee_id),
            users=catalog.users,
            now=now,
        )

    return _act


def test_open_ticket_initial_state(catalog):
    issue = catalog.require_issue("IT-NET-001")
    ticket = open_ticket(
        requester=catalog.require_user("u3"),
        issue=issue,
        application_id="IT",
        summary="Network down",
        description="No network on ward 3",
        priority=Priority.HIGH,
        ticket_type=TicketType.INCIDENT,
        window=SlaWindow(hours=4, auto_escalate=True),
        assignee=catalog.require_user("u7"),
        now=T0,
        routing_reason="Assigned to Vikram Rao based on current availability.",
        attachments=[Attachment(id="a1", name="shot.png", size=10, content_type="image/png", url="/a1")],
    )

    assert ticket.id.startswith("TKT-") and len(ticket.id) == 12
    assert ticket.status is TicketStatus.NEW
    assert (ticket.created_at, ticket.updated_at, ticket.assigned_at) == (T0, T0, T0)
    assert (ticket.sla_hours, ticket.auto_escalate, ticket.sla_level, ticket.is_escalated) == (4, True, 1, False)
    assert ticket.requester_phone == "555-0103"
    assert ticket.issue_name == "Network Issue"
    assert [comment.text for comment in ticket.comments] == [CREATION_LOG]
    assert isinstance(ticket.attachments, tuple)


def test_happy_path_to_closed(act):
    ticket = make_ticket()

    started = act(ticket, TicketAction.START_WORK, "u7", now=T0 + timedelta(hours=1))
    resolved = act(started, TicketAction.RESOLVE, "u7", text="Replaced switch", now=T0 + timedelta(hours=3))
    closed = act(resolved, TicketAction.CONFIRM, "u3", now=T0 + timedelta(hours=4))

    assert started.status is TicketStatus.IN_PROGRESS
    assert started.work_started_at == T0 + timedelta(hours=1)
    assert resolved.status is TicketStatus.RESOLVED
    assert resolved.resolved_at == T0 + timedelta(hours=3)
    assert resolved.actual_resolution_hours == 3.0
    assert closed.status is TicketStatus.CLOSED
    assert closed.closed_at == T0 + timedelta(hours=4)
    assert [comment.text for comment in closed.comments] == [
        "Vikram Rao started working on this ticket.",
        "MARKED AS RESOLVED by Vikram Rao: Replaced switch",
        "SYSTEM NOTIFICATION: Email sent to user Arjun Mehta regarding resolution.",
        "Ticket closed by Arjun Mehta (Confirmation).",
    ]
    assert [comment.is_internal for comment in closed.comments] == [False, False, True, False]


def test_resolve_without_note_uses_default(act):
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)
    resolved = act(ticket, TicketAction.RESOLVE, "u7")
    assert resolved.comments[0].text == "MARKED AS RESOLVED by Vikram Rao: No detailed remarks provided."


def test_invalid_edge_leaves_ticket_unchanged(act):
    ticket = make_ticket()
    before = astuple(ticket)

    with pytest.raises(InvalidTransition):
        act(ticket, TicketAction.RESOLVE, "u7")

    assert astuple(ticket) == before


def test_closed_ticket_rejects_everything(act):
    ticket = make_ticket(status=TicketStatus.CLOSED)
    for action in TicketAction:
        with pytest.raises(InvalidTransition):
            act(ticket, action, "u1", text="anything", assignee_id="u6")


def test_state_is_checked_before_permissions(act):
    with pytest.raises(InvalidTransition):
        act(make_ticket(), TicketAction.CONFIRM, "u4")


def test_empty_rejection_reason_is_refused(act):
    ticket = make_ticket(status=TicketStatus.RESOLVED, resolved_at=LATER)

    with pytest.raises(ValidationError):
        act(ticket, TicketAction.REJECT, "u3", text="   ")

    assert ticket.status is TicketStatus.RESOLVED
    assert ticket.comments == []


def test_reject_reopens_and_clears_resolution(act):
    ticket = make_ticket(status=TicketStatus.RESOLVED, resolved_at=LATER, actual_resolution_hours=2.0)

    reopened = act(ticket, TicketAction.REJECT, "u3", text="Still broken")

    assert reopened.status is TicketStatus.IN_PROGRESS
    assert reopened.resolved_at is None
    assert reopened.actual_resolution_hours is None
    assert [comment.text for comment in reopened.comments] == [
        "RESOLUTION REJECTED / REOPENED by Arjun Mehta.\nRemarks: Still broken",
        "SYSTEM NOTIFICATION: Reopen notification sent to assignee: Vikram Rao.",
    ]


def test_reopen_by_assignee(act):
    ticket = make_ticket(status=TicketStatus.RESOLVED, resolved_at=LATER)
    reopened = act(ticket, TicketAction.REOPEN, "u7")
    assert reopened.status is TicketStatus.IN_PROGRESS
    assert reopened.resolved_at is None
    assert reopened.comments[-1].text == "Ticket Reopened by Vikram Rao."


def test_pending_user_round_trip_keeps_work_start(act):
    started = act(make_ticket(), TicketAction.START_WORK, "u7", now=T0 + timedelta(hours=1))
    waiting = act(started, TicketAction.AWAIT_USER, "u7", text="Need the asset tag")
    resumed = act(waiting, TicketAction.START_WORK, "u7", now=T0 + timedelta(hours=5))

    assert waiting.status is TicketStatus.PENDING_USER
    assert waiting.comments[-1].text == (
        "Vikram Rao is waiting on Arjun Mehta for more information.\nRemarks: Need the asset tag"
    )
    assert resumed.status is TicketStatus.IN_PROGRESS
    assert resumed.work_started_at == T0 + timedelta(hours=1)


@pytest.mark.parametrize(
    ("action", "status", "actor_id"),
    [
        (TicketAction.START_WORK, TicketStatus.NEW, "u3"),
        (TicketAction.START_WORK, TicketStatus.NEW, "u8"),
        (TicketAction.RESOLVE, TicketStatus.IN_PROGRESS, "u6"),
        (TicketAction.CONFIRM, TicketStatus.RESOLVED, "u7"),
        (TicketAction.REJECT, TicketStatus.RESOLVED, "u4"),
        (TicketAction.REOPEN, TicketStatus.RESOLVED, "u3"),
    ],
)
def test_unauthorized_actors_are_refused(act, action, status, actor_id):
    with pytest.raises(Unauthorized):
        act(make_ticket(status=status), action, actor_id, text="reason")


@pytest.mark.parametrize("actor_id", ["u7", "u5", "u1"])
def test_assignee_manager_and_admin_may_edit(act, actor_id):
    assert act(make_ticket(), TicketAction.START_WORK, actor_id).status is TicketStatus.IN_PROGRESS


@pytest.mark.parametrize("actor_id", ["u3", "u5", "u1"])
def test_requester_manager_and_admin_may_close(act, actor_id):
    ticket = make_ticket(status=TicketStatus.RESOLVED, resolved_at=LATER)
    assert act(ticket, TicketAction.CONFIRM, actor_id).status is TicketStatus.CLOSED


def test_transfer_from_new_assigns(act):
    transferred = act(make_ticket(), TicketAction.TRANSFER, "u7", assignee_id="u6")

    assert transferred.status is TicketStatus.ASSIGNED
    assert transferred.assignee_id == "u6"
    assert transferred.assigned_at == LATER
    assert transferred.comments[-1].text == "Ticket transferred from Vikram Rao to Sneha Kapoor."


def test_transfer_keeps_in_progress_status(act):
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)
    assert act(ticket, TicketAction.TRANSFER, "u5", assignee_id="u8").status is TicketStatus.IN_PROGRESS


@pytest.mark.parametrize(
    ("assignee_id", "error"),
    [("", ValidationError), ("u7", ValidationError), ("u3", ValidationError), ("nobody", NotFound)],
)
def test_transfer_target_validation(act, assignee_id, error):
    with pytest.raises(error):
        act(make_ticket(), TicketAction.TRANSFER, "u7", assignee_id=assignee_id)


def test_any_known_user_may_comment(act):
    ticket = make_ticket(status=TicketStatus.RESOLVED, resolved_at=LATER)

    commented = act(ticket, TicketAction.COMMENT, "u4", text="INTERNAL: same problem on my floor")

    assert commented.status is TicketStatus.RESOLVED
    assert commented.comments[-1].author_id == "u4"
    assert commented.comments[-1].is_internal is True


def test_empty_comment_is_refused(act):
    with pytest.raises(ValidationError):
        act(make_ticket(), TicketAction.COMMENT, "u3", text="")


def test_comments_are_append_only(act):
    first = act(make_ticket(), TicketAction.COMMENT, "u3", text="one")
    second = act(first, TicketAction.START_WORK, "u7")
    third = act(second, TicketAction.COMMENT, "u7", text="two")

    assert [comment.text for comment in third.comments] == [
        "one",
        "Vikram Rao started working on this ticket.",
        "two",
    ]
    assert third.comments[0] is first.comments[0]
    assert len(first.comments) == 1
    assert len(second.comments) == 2


def test_internal_markers_are_case_sensitive():
    assert is_internal_text("SYSTEM NOTIFICATION: sent")
    assert is_internal_text("note INTERNAL only")
    assert not is_internal_text("internal note")


def test_transfer_candidates_exclude_current_assignee(catalog):
    candidates = transfer_candidates(make_ticket(assignee_id="u7"), catalog.users)
    assert [user.id for user in candidates] == ["u2", "u5", "u6", "u8", "u9", "u10"]
