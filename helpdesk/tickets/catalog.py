"""Read-only reference data: applications, users, issue catalog and SLA table."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from .errors import NotFound
from .models import Application, IssueDefinition, Priority, SLARule, TicketType, User, UserRole
from .sla import DEFAULT_SLA_RULES, SLAPolicy

logger = logging.getLogger(__name__)


class _CatalogModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ApplicationRecord(_CatalogModel):
    id: str = Field(..., min_length=1)
    name: str
    status: str = "Active"

    def to_domain(self) -> Application:
        return Application(id=self.id, name=self.name, active=self.status == "Active")


class UserRecord(_CatalogModel):
    id: str = Field(..., min_length=1)
    name: str
    role: UserRole
    department: str = ""
    email: str = ""
    phone: str = ""
    manager_id: str | None = Field(default=None, alias="managerId")

    def to_domain(self) -> User:
        return User(
            id=self.id,
            name=self.name,
            role=self.role,
            department=self.department,
            email=self.email,
            phone=self.phone,
            manager_id=self.manager_id,
        )


class IssueRecord(_CatalogModel):
    code: str = Field(..., min_length=1)
    name: str
    app: str
    category: TicketType = TicketType.INCIDENT
    priority: Priority = Priority.MEDIUM
    assignee_ids: list[str] = Field(default_factory=list, alias="assigneeIds")
    sla_hours: float | None = Field(default=None, alias="slaHours", gt=0)
    status: str = "Active"

    def to_domain(self) -> IssueDefinition:
        return IssueDefinition(
            code=self.code,
            name=self.name,
            application_id=self.app,
            category=self.category,
            priority=self.priority,
            assignee_ids=tuple(self.assignee_ids),
            sla_hours=self.sla_hours,
            active=self.status == "Active",
        )


class SLARecord(_CatalogModel):
    id: str = ""
    priority: Priority
    ticket_type: TicketType = Field(alias="ticketType")
    resolution_time_hours: float = Field(alias="resolutionTimeHours", gt=0)
    auto_escalate: bool = Field(default=False, alias="autoEscalate")

    def to_domain(self) -> SLARule:
        return SLARule(
            priority=self.priority,
            ticket_type=self.ticket_type,
            resolution_time_hours=self.resolution_time_hours,
            auto_escalate=self.auto_escalate,
            id=self.id,
        )


class CatalogDocument(_CatalogModel):
    applications: list[ApplicationRecord] = Field(default_factory=list)
    users: list[UserRecord] = Field(default_factory=list)
    issues: list[IssueRecord] = Field(default_factory=list)
    sla_rules: list[SLARecord] | None = Field(default=None, alias="slaRules")


@dataclass(slots=True)
class ReferenceCatalog:
    """Directory and configuration injected into every engine call."""

    applications: tuple[Application, ...] = ()
    users: tuple[User, ...] = ()
    issues: tuple[IssueDefinition, ...] = ()
    sla_policy: SLAPolicy = field(default_factory=SLAPolicy)

    def user(self, user_id: str) -> User | None:
        return next((user for user in self.users if user.id == user_id), None)

    def require_user(self, user_id: str) -> User:
        user = self.user(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    def application(self, application_id: str) -> Application | None:
        return next((app for app in self.applications if app.id == application_id), None)

    def require_application(self, application_id: str) -> Application:
        application = self.application(application_id)
        if application is None:
            raise NotFound(f"Application {application_id} not found")
        return application

    def issue(self, code: str) -> IssueDefinition | None:
        return next((issue for issue in self.issues if issue.code == code), None)

    def require_issue(self, code: str) -> IssueDefinition:
        issue = self.issue(code)
        if issue is None:
            raise NotFound(f"Issue {code} not found")
        return issue

    def issues_for(self, application_id: str) -> list[IssueDefinition]:
        return [issue for issue in self.issues if issue.application_id == application_id]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ReferenceCatalog":
        document = CatalogDocument.model_validate(data)
        rules = (
            [record.to_domain() for record in document.sla_rules]
            if document.sla_rules is not None
            else list(DEFAULT_SLA_RULES)
        )
        return cls(
            applications=tuple(record.to_domain() for record in document.applications),
            users=tuple(record.to_domain() for record in document.users),
            issues=tuple(record.to_domain() for record in document.issues),
            sla_policy=SLAPolicy(rules),
        )


def load_catalog(path: str | Path | None = None) -> ReferenceCatalog:
    """Load reference data from a JSON file, or the built-in seed when ``path`` is empty."""

    if not path:
        return ReferenceCatalog.from_mapping(DEFAULT_CATALOG)
    with Path(path).open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    catalog = ReferenceCatalog.from_mapping(data)
    logger.info(
        "Loaded catalog from %s: %d applications, %d users, %d issues",
        path,
        len(catalog.applications),
        len(catalog.users),
        len(catalog.issues),
    )
    return catalog


DEFAULT_CATALOG: dict[str, Any] = {
    "applications": [
        {"id": "IT", "name": "IT Infrastructure"},
        {"id": "P2P", "name": "P2P"},
        {"id": "Eshopaid", "name": "Eshopaid"},
        {"id": "Oracle ERP", "name": "Oracle ERP"},
        {"id": "HIS", "name": "HIS"},
        {"id": "Website", "name": "Website"},
    ],
    "users": [
        {"id": "u1", "name": "System Admin", "role": "Admin", "department": "IT"},
        {"id": "u2", "name": "Priya Raman", "role": "Assignee", "department": "Robotic Process Automation", "managerId": "u5"},
        {"id": "u3", "name": "Arjun Mehta", "role": "Requester", "department": "Nursing", "phone": "555-0103"},
        {"id": "u4", "name": "Kavya Nair", "role": "Requester", "department": "Pharmacy", "phone": "555-0104"},
        {"id": "u5", "name": "Rahul Iyer", "role": "Manager", "department": "IT Infrastructure"},
        {"id": "u6", "name": "Sneha Kapoor", "role": "Assignee", "department": "IT Infrastructure", "managerId": "u5"},
        {"id": "u7", "name": "Vikram Rao", "role": "Assignee", "department": "IT Infrastructure", "managerId": "u5"},
        {"id": "u8", "name": "Anita Das", "role": "Assignee", "department": "IT Support", "managerId": "u5"},
        {"id": "u9", "name": "Farah Khan", "role": "Assignee", "department": "Finance & Accounts", "managerId": "u5"},
        {"id": "u10", "name": "Deepak Joshi", "role": "Assignee", "department": "HIS", "managerId": "u5"},
    ],
    "issues": [
        {"code": "IT-NET-001", "name": "Network Issue", "app": "IT", "category": "Incident", "priority": "High", "assigneeIds": ["u7", "u6"], "slaHours": 4},
        {"code": "IT-PRN-001", "name": "Printer / Scanner Issue", "app": "IT", "category": "Incident", "priority": "High", "assigneeIds": ["u8", "u6"], "slaHours": 8},
        {"code": "IT-ACC-001", "name": "Access & Right", "app": "IT", "category": "Service Request", "priority": "High", "assigneeIds": ["u7", "u6"], "slaHours": 24},
        {"code": "IT-EML-001", "name": "Email", "app": "IT", "category": "Service Request", "priority": "High", "assigneeIds": ["u7", "u8"], "slaHours": 24},
        {"code": "IT-BOT-001", "name": "BOT Workflow mismatch", "app": "IT", "category": "Incident", "priority": "High", "assigneeIds": ["u2"], "slaHours": 24},
        {"code": "P2P-APP-001", "name": "P2P Application Issues", "app": "P2P", "category": "Incident", "priority": "High", "assigneeIds": ["u9", "u6"], "slaHours": 8},
        {"code": "HIS-APP-001", "name": "HIS Module Error", "app": "HIS", "category": "Incident", "priority": "Critical", "assigneeIds": ["u10"]},
    ],
}
