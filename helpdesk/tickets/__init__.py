"""Ticket lifecycle and assignment engine."""

from .assignment import AssignmentDecision, select_assignee, select_from_loads
from .catalog import ReferenceCatalog, load_catalog
from .eligibility import eligible_assignees
from .errors import (
    ConfigurationDefect,
    InvalidTransition,
    NotFound,
    TicketServiceError,
    Unauthorized,
    ValidationError,
)
from .matching import best_match, match_issue
from .models import Attachment, Comment, IssueDefinition, Priority, Ticket, TicketType, User, UserRole
from .repository import InMemoryTicketRepository, PostgresTicketRepository, TicketStore
from .service import CreateTicketRequest, TicketService
from .sla import SLAPolicy, SlaEvaluation, evaluate_sla
from .state import TicketAction, TicketStateMachine, TicketStatus
from .sweep import SlaSweeper
from .visibility import TicketStats, TicketView, can_view, ticket_stats
from .workflow import TransitionPayload, apply_action

__all__ = [
    "AssignmentDecision",
    "Attachment",
    "Comment",
    "ConfigurationDefect",
    "CreateTicketRequest",
    "InMemoryTicketRepository",
    "InvalidTransition",
    "IssueDefinition",
    "NotFound",
    "PostgresTicketRepository",
    "Priority",
    "ReferenceCatalog",
    "SLAPolicy",
    "SlaEvaluation",
    "SlaSweeper",
    "Ticket",
    "TicketAction",
    "TicketService",
    "TicketServiceError",
    "TicketStateMachine",
    "TicketStats",
    "TicketStatus",
    "TicketStore",
    "TicketType",
    "TicketView",
    "Unauthorized",
    "User",
    "UserRole",
    "ValidationError",
    "TransitionPayload",
    "apply_action",
    "best_match",
    "can_view",
    "eligible_assignees",
    "evaluate_sla",
    "load_catalog",
    "match_issue",
    "select_assignee",
    "select_from_loads",
    "ticket_stats",
]
