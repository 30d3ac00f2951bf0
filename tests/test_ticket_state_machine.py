import pytest

from helpdesk.tickets.errors import InvalidTransition
from helpdesk.tickets.state import TicketAction, TicketStateMachine, TicketStatus


def test_initial_state_is_new():
    assert TicketStateMachine.initial_state() is TicketStatus.NEW
    assert TicketStatus.NEW.value == "Yet to Start"


def test_state_machine_validates_transitions():
    assert TicketStateMachine.can_transition(TicketStatus.NEW, TicketStatus.IN_PROGRESS)
    assert TicketStateMachine.can_transition(TicketStatus.RESOLVED, TicketStatus.IN_PROGRESS)
    assert not TicketStateMachine.can_transition(TicketStatus.NEW, TicketStatus.RESOLVED)
    assert not TicketStateMachine.can_transition(TicketStatus.CLOSED, TicketStatus.CLOSED)
    with pytest.raises(InvalidTransition):
        TicketStateMachine.assert_transition(TicketStatus.NEW, TicketStatus.CLOSED)


@pytest.mark.parametrize(
    ("action", "current", "expected"),
    [
        (TicketAction.START_WORK, TicketStatus.NEW, TicketStatus.IN_PROGRESS),
        (TicketAction.START_WORK, TicketStatus.ASSIGNED, TicketStatus.IN_PROGRESS),
        (TicketAction.START_WORK, TicketStatus.PENDING_USER, TicketStatus.IN_PROGRESS),
        (TicketAction.AWAIT_USER, TicketStatus.IN_PROGRESS, TicketStatus.PENDING_USER),
        (TicketAction.RESOLVE, TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED),
        (TicketAction.RESOLVE, TicketStatus.PENDING_USER, TicketStatus.RESOLVED),
        (TicketAction.CONFIRM, TicketStatus.RESOLVED, TicketStatus.CLOSED),
        (TicketAction.REJECT, TicketStatus.RESOLVED, TicketStatus.IN_PROGRESS),
        (TicketAction.REOPEN, TicketStatus.RESOLVED, TicketStatus.IN_PROGRESS),
        (TicketAction.TRANSFER, TicketStatus.NEW, TicketStatus.ASSIGNED),
        (TicketAction.TRANSFER, TicketStatus.IN_PROGRESS, TicketStatus.IN_PROGRESS),
        (TicketAction.COMMENT, TicketStatus.RESOLVED, TicketStatus.RESOLVED),
    ],
)
def test_target_state_for_legal_actions(action, current, expected):
    assert TicketStateMachine.target_state(action, current) is expected


@pytest.mark.parametrize(
    ("action", "current"),
    [
        (TicketAction.RESOLVE, TicketStatus.NEW),
        (TicketAction.RESOLVE, TicketStatus.ASSIGNED),
        (TicketAction.CONFIRM, TicketStatus.IN_PROGRESS),
        (TicketAction.REJECT, TicketStatus.NEW),
        (TicketAction.START_WORK, TicketStatus.RESOLVED),
        (TicketAction.AWAIT_USER, TicketStatus.NEW),
        (TicketAction.TRANSFER, TicketStatus.RESOLVED),
    ],
)
def test_target_state_rejects_illegal_actions(action, current):
    assert not TicketStateMachine.allows(action, current)
    with pytest.raises(InvalidTransition):
        TicketStateMachine.target_state(action, current)


@pytest.mark.parametrize("action", list(TicketAction))
def test_closed_tickets_accept_no_action(action):
    with pytest.raises(InvalidTransition):
        TicketStateMachine.target_state(action, TicketStatus.CLOSED)


def test_open_statuses():
    assert TicketStatus.PENDING_USER.is_open
    assert not TicketStatus.RESOLVED.is_open
    assert not TicketStatus.CLOSED.is_open
