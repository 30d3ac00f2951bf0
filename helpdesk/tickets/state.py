from __future__ import annotations

from enum import Enum
from typing import Mapping

from .errors import InvalidTransition


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    NEW = "Yet to Start"
    ASSIGNED = "Assigned"
    IN_PROGRESS = "Work in Progress"
    PENDING_USER = "Pending User"
    RESOLVED = "Resolved"
    CLOSED = "Closed"

    @property
    def is_open(self) -> bool:
        return self not in (TicketStatus.RESOLVED, TicketStatus.CLOSED)


class TicketAction(str, Enum):
    """Actions that drive a ticket through its lifecycle."""

    START_WORK = "start_work"
    AWAIT_USER = "await_user"
    RESOLVE = "resolve"
    CONFIRM = "confirm"
    REJECT = "reject"
    REOPEN = "reopen"
    TRANSFER = "transfer"
    COMMENT = "comment"


_OPEN_STATES = frozenset(
    {TicketStatus.NEW, TicketStatus.ASSIGNED, TicketStatus.IN_PROGRESS, TicketStatus.PENDING_USER}
)


class TicketStateMachine:
    """Validate ticket lifecycle transitions."""

    _TRANSITIONS: dict[TicketStatus, set[TicketStatus]] = {
        TicketStatus.NEW: {TicketStatus.ASSIGNED, TicketStatus.IN_PROGRESS},
        TicketStatus.ASSIGNED: {TicketStatus.IN_PROGRESS},
        TicketStatus.IN_PROGRESS: {TicketStatus.PENDING_USER, TicketStatus.RESOLVED},
        TicketStatus.PENDING_USER: {TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED},
        TicketStatus.RESOLVED: {TicketStatus.CLOSED, TicketStatus.IN_PROGRESS},
        TicketStatus.CLOSED: set(),
    }

    # Source states accepted by each action. Transfer and Comment keep the
    # current status (Transfer promotes New to Assigned).
    _ACTION_SOURCES: Mapping[TicketAction, frozenset[TicketStatus]] = {
        TicketAction.START_WORK: frozenset(
            {TicketStatus.NEW, TicketStatus.ASSIGNED, TicketStatus.PENDING_USER}
        ),
        TicketAction.AWAIT_USER: frozenset({TicketStatus.IN_PROGRESS}),
        TicketAction.RESOLVE: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.PENDING_USER}),
        TicketAction.CONFIRM: frozenset({TicketStatus.RESOLVED}),
        TicketAction.REJECT: frozenset({TicketStatus.RESOLVED}),
        TicketAction.REOPEN: frozenset({TicketStatus.RESOLVED}),
        TicketAction.TRANSFER: _OPEN_STATES,
        TicketAction.COMMENT: _OPEN_STATES | {TicketStatus.RESOLVED},
    }

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.NEW

    @classmethod
    def can_transition(cls, current: TicketStatus, new: TicketStatus) -> bool:
        if current == new:
            return current != TicketStatus.CLOSED
        return new in cls._TRANSITIONS.get(current, set())

    @classmethod
    def allows(cls, action: TicketAction, current: TicketStatus) -> bool:
        return current in cls._ACTION_SOURCES[action]

    @classmethod
    def target_state(cls, action: TicketAction, current: TicketStatus) -> TicketStatus:
        """Return the status reached by applying ``action`` from ``current``.

        Raises :class:`InvalidTransition` when the action is not legal from
        the current state.
        """

        if not cls.allows(action, current):
            raise InvalidTransition(f"Cannot {action.value.replace('_', ' ')} a ticket in status '{current.value}'")

        if action in (TicketAction.START_WORK, TicketAction.REJECT, TicketAction.REOPEN):
            target = TicketStatus.IN_PROGRESS
        elif action is TicketAction.AWAIT_USER:
            target = TicketStatus.PENDING_USER
        elif action is TicketAction.RESOLVE:
            target = TicketStatus.RESOLVED
        elif action is TicketAction.CONFIRM:
            target = TicketStatus.CLOSED
        elif action is TicketAction.TRANSFER:
            target = TicketStatus.ASSIGNED if current is TicketStatus.NEW else current
        elif action is TicketAction.COMMENT:
            target = current
        else:  # pragma: no cover - enum is closed
            raise InvalidTransition(f"Unsupported action: {action!s}")

        cls.assert_transition(current, target)
        return target

    @classmethod
    def assert_transition(cls, current: TicketStatus, new: TicketStatus) -> None:
        if not cls.can_transition(current, new):
            raise InvalidTransition(f"Invalid ticket status transition: {current.value} -> {new.value}")
