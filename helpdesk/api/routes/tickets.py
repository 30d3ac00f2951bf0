from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from helpdesk.api.errors import to_http_exception
from helpdesk.dependencies.auth import CurrentUser
from helpdesk.dependencies.tickets import TicketServiceDep
from helpdesk.tickets.errors import TicketServiceError
from helpdesk.tickets.models import Attachment, Priority, TicketType, UserRole
from helpdesk.tickets.service import CreateTicketRequest
from helpdesk.tickets.state import TicketAction, TicketStatus
from helpdesk.tickets.visibility import TicketView
from helpdesk.tickets.workflow import TransitionPayload

router = APIRouter(prefix="/tickets", tags=["tickets"])


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserModel(_FromDomain):
    id: str
    name: str
    role: UserRole
    department: str
    email: str


class CommentModel(_FromDomain):
    id: str
    author_id: str
    author_name: str
    text: str
    created_at: datetime
    is_internal: bool


class AttachmentModel(_FromDomain):
    id: str
    name: str
    size: int = Field(ge=0)
    content_type: str
    url: str


class TicketModel(_FromDomain):
    id: str
    requester_id: str
    requester_name: str
    application_id: str
    ticket_type: TicketType
    issue_code: str
    issue_name: str
    summary: str
    status: TicketStatus
    priority: Priority
    assignee_id: str | None
    created_at: datetime
    updated_at: datetime
    sla_level: int
    is_escalated: bool
    sla_breach_duration_hours: float | None


class TicketDetailModel(TicketModel):
    description: str
    requester_phone: str
    assigned_at: datetime | None
    work_started_at: datetime | None
    resolved_at: datetime | None
    closed_at: datetime | None
    sla_hours: float
    auto_escalate: bool
    actual_resolution_hours: float | None
    routing_reason: str
    comments: list[CommentModel]
    attachments: list[AttachmentModel]
    version: int


class SlaEvaluationModel(_FromDomain):
    sla_level: int
    is_escalated: bool
    breached: bool
    sla_breach_duration_hours: float | None
    elapsed_hours: float
    work_elapsed_hours: float | None
    window_hours: float


class TicketStatsModel(_FromDomain):
    total: int
    open: int
    in_progress: int
    resolved: int
    sla_breached: int


class TicketCreateRequest(BaseModel):
    description: str = ""
    summary: str = ""
    ai_summary: str = ""
    application_id: str | None = None
    issue_code: str | None = None
    priority: Priority | None = None
    ticket_type: TicketType | None = None
    attachments: list[AttachmentModel] = Field(default_factory=list)


class TicketActionRequest(BaseModel):
    action: TicketAction
    text: str = ""
    assignee_id: str | None = None


@router.get("", response_model=list[TicketModel], summary="List tickets")
async def list_tickets(
    service: TicketServiceDep,
    user: CurrentUser,
    status_filter: Annotated[TicketStatus | None, Query(alias="status")] = None,
    view: TicketView = TicketView.RELEVANT,
) -> list[TicketModel]:
    tickets = await service.list_tickets(status=status_filter, viewer_id=user.id, view=view)
    return [TicketModel.model_validate(ticket) for ticket in tickets]


@router.get("/stats", response_model=TicketStatsModel, summary="Dashboard counts for the caller")
async def get_ticket_stats(service: TicketServiceDep, user: CurrentUser) -> TicketStatsModel:
    return TicketStatsModel.model_validate(await service.ticket_stats(user.id))


@router.post("", response_model=TicketDetailModel, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    payload: TicketCreateRequest,
    service: TicketServiceDep,
    user: CurrentUser,
) -> TicketDetailModel:
    request = CreateTicketRequest(
        requester_id=user.id,
        description=payload.description,
        summary=payload.summary,
        ai_summary=payload.ai_summary,
        application_id=payload.application_id,
        issue_code=payload.issue_code,
        priority=payload.priority,
        ticket_type=payload.ticket_type,
        attachments=tuple(Attachment(**item.model_dump()) for item in payload.attachments),
    )
    try:
        ticket = await service.create_ticket(request)
    except TicketServiceError as exc:
        raise to_http_exception(exc) from exc
    return TicketDetailModel.model_validate(ticket)


@router.get("/{ticket_id}", response_model=TicketDetailModel)
async def get_ticket(ticket_id: str, service: TicketServiceDep, user: CurrentUser) -> TicketDetailModel:
    try:
        ticket = await service.get_ticket(ticket_id, viewer_id=user.id)
    except TicketServiceError as exc:
        raise to_http_exception(exc) from exc
    return TicketDetailModel.model_validate(ticket)


@router.post("/{ticket_id}/actions", response_model=TicketDetailModel)
async def apply_ticket_action(
    ticket_id: str,
    payload: TicketActionRequest,
    service: TicketServiceDep,
    user: CurrentUser,
) -> TicketDetailModel:
    try:
        ticket = await service.transition(
            ticket_id,
            payload.action,
            user.id,
            TransitionPayload(text=payload.text, assignee_id=payload.assignee_id),
        )
    except TicketServiceError as exc:
        raise to_http_exception(exc) from exc
    return TicketDetailModel.model_validate(ticket)


@router.get("/{ticket_id}/sla", response_model=SlaEvaluationModel)
async def get_ticket_sla(ticket_id: str, service: TicketServiceDep, user: CurrentUser) -> SlaEvaluationModel:
    try:
        ticket = await service.get_ticket(ticket_id, viewer_id=user.id)
    except TicketServiceError as exc:
        raise to_http_exception(exc) from exc
    return SlaEvaluationModel.model_validate(service.evaluate_sla(ticket))


@router.get("/{ticket_id}/transfer-candidates", response_model=list[UserModel])
async def list_transfer_candidates(
    ticket_id: str, service: TicketServiceDep, user: CurrentUser
) -> list[UserModel]:
    try:
        candidates = await service.transfer_candidates(ticket_id, viewer_id=user.id)
    except TicketServiceError as exc:
        raise to_http_exception(exc) from exc
    return [UserModel.model_validate(candidate) for candidate in candidates]

