from helpdesk.tickets.matching import (
    best_match,
    match_issue,
    normalize_ticket_text,
    resolve_application,
    score_issue,
    tokenize,
)
from helpdesk.tickets.models import Application

from tests.factories import make_issue

NETWORK = make_issue(("u7",), code="IT-NET-001", name="Network Issue", application_id="IT")
PRINTER = make_issue(("u8",), code="IT-PRN-001", name="Printer / Scanner Issue", application_id="IT")


def test_normalize_ticket_text_collapses_whitespace():
    assert normalize_ticket_text("  Printer\n\tNOT   working ") == "printer not working"


def test_tokenize_drops_short_tokens_and_merges_summary():
    assert tokenize("I am a user", "VPN down") == ["am", "user", "vpn", "down"]


def test_printer_complaint_matches_printer_issue():
    match = best_match([NETWORK, PRINTER], "my printer is not scanning documents")
    assert match is PRINTER


def test_score_counts_substring_and_word_prefix():
    # "printer" is inside the name (+2) and a prefix of the word "printer" (+1)
    assert score_issue(PRINTER, ["printer"]) == 3
    # "prn" only occurs inside the code
    assert score_issue(PRINTER, ["prn"]) == 2
    # "scanners" is not a substring but "scanner" is a prefix of it
    assert score_issue(PRINTER, ["scanners"]) == 1


def test_ai_summary_contributes_tokens():
    assert best_match([PRINTER, NETWORK], "it is broken", "network outage") is NETWORK


def test_ties_keep_first_candidate():
    assert best_match([NETWORK, PRINTER], "nothing relevant here") is NETWORK
    assert best_match([PRINTER, NETWORK], "nothing relevant here") is PRINTER


def test_empty_candidates_return_none():
    assert best_match([], "printer") is None


def test_match_issue_ignores_inactive_and_unstaffed_issues():
    retired = make_issue(("u7",), code="IT-PRN-000", name="Printer Jam", application_id="IT", active=False)
    unstaffed = make_issue((), code="IT-PRN-002", name="Printer Toner", application_id="IT")
    issues = [retired, unstaffed, NETWORK, PRINTER]

    assert match_issue(issues, "IT", "printer toner jam") is PRINTER


def test_match_issue_falls_back_to_first_staffed_issue():
    unstaffed = make_issue((), code="X-001", name="Orphan", application_id="X")
    assert match_issue([unstaffed, NETWORK, PRINTER], "UNKNOWN", "printer") is NETWORK
    assert match_issue([unstaffed], "X", "orphan") is unstaffed
    assert match_issue([], "IT", "printer") is None


def test_resolve_application_by_id_or_name():
    applications = [Application(id="IT", name="IT Infrastructure"), Application(id="HIS", name="HIS")]
    assert resolve_application("IT", applications) == "IT"
    assert resolve_application("it infrastructure", applications) == "IT"
    assert resolve_application("Payroll", applications) == "Payroll"
    assert resolve_application(None, applications) is None
