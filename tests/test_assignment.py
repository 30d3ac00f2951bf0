from helpdesk.tickets.assignment import (
    NO_ENGINEERS_REASON,
    active_load,
    count_active_loads,
    select_assignee,
    select_from_loads,
)
from helpdesk.tickets.errors import ConfigurationDefect
from helpdesk.tickets.state import TicketStatus

from tests.factories import make_issue, make_ticket, make_user

USERS = [make_user("a", "Alice"), make_user("b", "Bob"), make_user("c", "Chen")]


def _tickets_for(loads: dict[str, int]):
    tickets = []
    for assignee_id, count in loads.items():
        for index in range(count):
            tickets.append(make_ticket(ticket_id=f"TKT-{assignee_id}-{index}", assignee_id=assignee_id))
    return tickets


def test_active_load_ignores_resolved_and_closed():
    tickets = [
        make_ticket(ticket_id="1", assignee_id="a"),
        make_ticket(ticket_id="2", assignee_id="a", status=TicketStatus.PENDING_USER),
        make_ticket(ticket_id="3", assignee_id="a", status=TicketStatus.RESOLVED),
        make_ticket(ticket_id="4", assignee_id="a", status=TicketStatus.CLOSED),
        make_ticket(ticket_id="5", assignee_id="b"),
    ]
    assert active_load("a", tickets) == 2
    assert count_active_loads(["a", "b", "c"], iter(tickets)) == {"a": 2, "b": 1, "c": 0}


def test_minimum_load_wins_with_first_in_list_on_ties():
    issue = make_issue(("a", "b", "c"))
    decision = select_assignee(issue, _tickets_for({"a": 3, "b": 1, "c": 1}), USERS)

    assert decision.user is not None and decision.user.id == "b"
    assert decision.reason == (
        "Primary engineer (Alice) is currently busy with 3 active tasks. Re-routed for faster resolution."
    )
    assert decision.loads == {"a": 3, "b": 1, "c": 1}
    assert decision.defect is None


def test_single_candidate_always_wins_regardless_of_load():
    issue = make_issue(("a",))
    decision = select_assignee(issue, _tickets_for({"a": 7}), USERS)

    assert decision.user.id == "a"
    assert decision.reason == "Assigned to Alice based on current availability."


def test_idle_primary_keeps_availability_reason():
    issue = make_issue(("a", "b"))
    decision = select_from_loads(issue, {"a": 0, "b": 0}, USERS)

    assert decision.user.id == "a"
    assert decision.reason == "Assigned to Alice based on current availability."


def test_selection_is_deterministic():
    issue = make_issue(("c", "a", "b"))
    tickets = _tickets_for({"a": 2, "b": 2, "c": 2})
    first = select_assignee(issue, tickets, USERS)
    second = select_assignee(issue, tickets, USERS)

    assert first == second
    assert first.user.id == "c"


def test_issue_without_engineers():
    decision = select_assignee(make_issue(()), [], USERS)

    assert decision.user is None
    assert decision.reason == NO_ENGINEERS_REASON


def test_dangling_assignee_is_reported_not_raised(caplog):
    issue = make_issue(("ghost", "a"), code="APP-404")
    decision = select_from_loads(issue, {"ghost": 0, "a": 1}, USERS)

    assert decision.user is None
    assert decision.assignee_id == "ghost"
    assert decision.reason == "Assigned to ghost based on current availability."
    assert isinstance(decision.defect, ConfigurationDefect)
    assert "APP-404" in caplog.text
