"""Free-text matching of a complaint onto the issue catalog."""

from __future__ import annotations

import re
import unicodedata
from typing import Sequence

from .models import Application, IssueDefinition

_NORMALIZE_RE = re.compile(r"\s+")

# Scoring weights for ``best_match``.
SUBSTRING_WEIGHT = 2
WORD_AFFIX_WEIGHT = 1
MIN_TOKEN_LENGTH = 2


def normalize_ticket_text(text: str) -> str:
    """Collapse whitespace, lowercase and unicode-normalize a ticket body."""

    normalized = unicodedata.normalize("NFKC", text or "")
    normalized = normalized.lower().strip()
    normalized = _NORMALIZE_RE.sub(" ", normalized)
    return normalized


def tokenize(description: str, ai_summary: str = "") -> list[str]:
    text = f"{normalize_ticket_text(description)} {normalize_ticket_text(ai_summary)}"
    return [token for token in text.split() if len(token) >= MIN_TOKEN_LENGTH]


def score_issue(issue: IssueDefinition, tokens: Sequence[str]) -> int:
    """Score a single candidate against pre-tokenized text.

    Each token earns ``SUBSTRING_WEIGHT`` when it occurs inside the issue name
    or code, plus ``WORD_AFFIX_WEIGHT`` when it is a prefix of a name word or
    a name word is a prefix of it.
    """

    name = (issue.name or "").lower()
    code = (issue.code or "").lower()
    name_words = name.split()
    score = 0
    for token in tokens:
        if token in name or token in code:
            score += SUBSTRING_WEIGHT
        if any(word.startswith(token) or token.startswith(word) for word in name_words):
            score += WORD_AFFIX_WEIGHT
    return score


def best_match(
    candidates: Sequence[IssueDefinition],
    description: str,
    ai_summary: str = "",
) -> IssueDefinition | None:
    """Pick the candidate whose name/code best matches the free text.

    Ties go to the earliest candidate, so the first one wins when nothing
    matches at all. Returns ``None`` only for an empty candidate list.
    """

    if not candidates:
        return None

    tokens = tokenize(description, ai_summary)
    best_issue = candidates[0]
    best_score = -1
    for issue in candidates:
        score = score_issue(issue, tokens)
        if score > best_score:
            best_issue, best_score = issue, score
    return best_issue


def resolve_application(guess: str | None, applications: Sequence[Application]) -> str | None:
    """Map an application guess (id or display name) onto a known application id."""

    if not guess:
        return None
    lowered = guess.strip().lower()
    for application in applications:
        if application.id == guess or (application.name and application.name.lower() == lowered):
            return application.id
    return guess


def match_issue(
    issues: Sequence[IssueDefinition],
    application_id: str | None,
    description: str,
    ai_summary: str = "",
) -> IssueDefinition | None:
    """Resolve the issue for a triage request.

    Only active issues with at least one engineer are considered for the
    application. When the application has none, fall back to the first
    staffed issue of the whole catalog, then to the first issue at all.
    """

    staffed = [issue for issue in issues if issue.active and issue.assignee_ids]
    app_issues = [issue for issue in staffed if issue.application_id == application_id]
    match = best_match(app_issues, description, ai_summary)
    if match is not None:
        return match
    if staffed:
        return staffed[0]
    return issues[0] if issues else None
