from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .state import TicketStatus


class Priority(str, Enum):
    """Ticket urgency levels, linked to the SLA table."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class TicketType(str, Enum):
    """Broad ticket categories."""

    INCIDENT = "Incident"
    SERVICE_REQUEST = "Service Request"
    CHANGE = "Change"
    OTHER = "Other"


class UserRole(str, Enum):
    """Directory roles."""

    REQUESTER = "Requester"
    ASSIGNEE = "Assignee"
    MANAGER = "Manager"
    ADMIN = "Admin"


ASSIGNABLE_ROLES = frozenset({UserRole.ASSIGNEE, UserRole.MANAGER})


@dataclass(frozen=True, slots=True)
class Application:
    """Business application that tickets are filed against."""

    id: str
    name: str
    active: bool = True


@dataclass(frozen=True, slots=True)
class User:
    """Directory entry for a requester, engineer, manager or administrator."""

    id: str
    name: str
    role: UserRole
    department: str = ""
    email: str = ""
    phone: str = ""
    manager_id: str | None = None

    def has_role(self, role: UserRole) -> bool:
        return self.role == role


@dataclass(frozen=True, slots=True)
class IssueDefinition:
    """Catalogued problem type within an application."""

    code: str
    name: str
    application_id: str
    category: TicketType
    priority: Priority
    assignee_ids: tuple[str, ...] = ()
    sla_hours: float | None = None
    active: bool = True

    @property
    def primary_assignee_id(self) -> str | None:
        return self.assignee_ids[0] if self.assignee_ids else None


@dataclass(frozen=True, slots=True)
class SLARule:
    """Resolution window for a (priority, ticket type) pair."""

    priority: Priority
    ticket_type: TicketType
    resolution_time_hours: float
    auto_escalate: bool = False
    id: str = ""


@dataclass(frozen=True, slots=True)
class Comment:
    """Entry of a ticket's append-only activity log."""

    id: str
    author_id: str
    author_name: str
    text: str
    created_at: datetime
    is_internal: bool = False


@dataclass(frozen=True, slots=True)
class Attachment:
    """File attached to a ticket at creation time."""

    id: str
    name: str
    size: int
    content_type: str
    url: str


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a support ticket entry."""

    id: str
    requester_id: str
    requester_name: str
    application_id: str
    ticket_type: TicketType
    issue_code: str
    issue_name: str
    summary: str
    description: str
    status: TicketStatus
    priority: Priority
    created_at: datetime
    updated_at: datetime
    sla_hours: float
    auto_escalate: bool = False
    requester_phone: str = ""
    assignee_id: str | None = None
    assigned_at: datetime | None = None
    work_started_at: datetime | None = None
    resolved_at: datetime | None = None
    closed_at: datetime | None = None
    sla_level: int = 1
    is_escalated: bool = False
    sla_breach_duration_hours: float | None = None
    actual_resolution_hours: float | None = None
    routing_reason: str = ""
    comments: list[Comment] = field(default_factory=list)
    attachments: tuple[Attachment, ...] = ()
    version: int = 0
