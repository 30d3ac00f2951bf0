"""Department-based eligibility of engineers for an application's issues.

Used while an administrator edits an issue definition to narrow down the
default assignee list. A user qualifies when their role can own tickets and
their department matches the application either directly (substring either
way against the application id or name) or through one of the keyword
families below. Longer keywords also accept near-miss spellings.
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Sequence

from .models import ASSIGNABLE_ROLES, Application, User

FUZZY_MIN_KEYWORD_LENGTH = 5
FUZZY_THRESHOLD = 0.8

_WORD_SPLIT = str.maketrans({char: " " for char in "-_/&(),."})


@dataclass(frozen=True, slots=True)
class DepartmentFamily:
    """Keyword family tying a kind of application to a kind of department."""

    name: str
    department_keywords: tuple[str, ...]
    app_ids: tuple[str, ...] = ()
    app_keywords: tuple[str, ...] = ()
    app_id_keywords: tuple[str, ...] = ()

    def applies_to(self, app_id: str, app_name: str) -> bool:
        if app_id in self.app_ids:
            return True
        if any(keyword in app_id for keyword in self.app_id_keywords):
            return True
        return any(_contains_keyword(app_name, keyword) for keyword in self.app_keywords)

    def covers(self, department: str) -> bool:
        return any(_contains_keyword(department, keyword) for keyword in self.department_keywords)


DEPARTMENT_FAMILIES: tuple[DepartmentFamily, ...] = (
    DepartmentFamily(
        name="robotics",
        app_id_keywords=("rpa",),
        app_keywords=("robotic", "automation", "rpa"),
        department_keywords=("robotic", "automation", "rpa"),
    ),
    DepartmentFamily(
        name="finance",
        app_ids=("p2p", "eshopaid"),
        app_keywords=("finance", "p2p", "eshopaid"),
        department_keywords=("finance", "accounts"),
    ),
    DepartmentFamily(
        name="hospital",
        app_ids=("his",),
        app_keywords=("his",),
        department_keywords=("his", "hospital"),
    ),
    DepartmentFamily(
        name="website",
        app_id_keywords=("website",),
        app_keywords=("website", "cms"),
        department_keywords=("website", "marketing"),
    ),
    DepartmentFamily(
        name="infrastructure",
        app_ids=("it",),
        app_keywords=("infrastructure",),
        department_keywords=("it", "infra"),
    ),
)


def _contains_keyword(text: str, keyword: str) -> bool:
    if keyword in text:
        return True
    if len(keyword) < FUZZY_MIN_KEYWORD_LENGTH:
        return False
    for word in text.translate(_WORD_SPLIT).split():
        if SequenceMatcher(None, word, keyword).ratio() >= FUZZY_THRESHOLD:
            return True
        # Compound words such as "roboticprocess" keep the keyword as a prefix.
        if len(word) > len(keyword) and SequenceMatcher(None, word[: len(keyword)], keyword).ratio() >= FUZZY_THRESHOLD:
            return True
    return False


def _is_direct_match(department: str, app_id: str, app_name: str) -> bool:
    if not department:
        return False
    return (
        (bool(app_id) and app_id in department)
        or (bool(app_id) and department in app_id)
        or (bool(app_name) and app_name in department)
        or (bool(app_name) and department in app_name)
    )


def department_matches(application: Application, department: str) -> bool:
    dept = (department or "").strip().lower()
    app_id = application.id.strip().lower()
    app_name = (application.name or "").strip().lower()

    if _is_direct_match(dept, app_id, app_name):
        return True
    if not dept:
        return False
    return any(family.applies_to(app_id, app_name) and family.covers(dept) for family in DEPARTMENT_FAMILIES)


def eligible_assignees(application: Application, users: Sequence[User]) -> list[User]:
    """Return the users allowed to appear on the application's assignee lists."""

    return [
        user
        for user in users
        if user.role in ASSIGNABLE_ROLES and department_matches(application, user.department)
    ]
