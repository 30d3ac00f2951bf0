from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from helpdesk.api.errors import to_http_exception
from helpdesk.api.routes.tickets import UserModel
from helpdesk.dependencies.auth import CurrentUser, role_required
from helpdesk.dependencies.tickets import TicketServiceDep
from helpdesk.tickets.errors import TicketServiceError
from helpdesk.tickets.models import Priority, TicketType, UserRole

router = APIRouter(tags=["triage"])


class IssueMatchRequest(BaseModel):
    description: str = Field(min_length=1)
    ai_summary: str = ""
    application_id: str | None = None


class IssueMatchResponse(BaseModel):
    application_id: str | None
    issue_code: str | None = None
    issue_name: str | None = None
    priority: Priority | None = None
    category: TicketType | None = None
    suggested_assignee_id: str | None = None
    routing_reason: str | None = None
    loads: dict[str, int] = Field(default_factory=dict)


@router.post("/issues/match", response_model=IssueMatchResponse, summary="Preview issue matching and routing")
async def match_issue(
    payload: IssueMatchRequest, service: TicketServiceDep, user: CurrentUser
) -> IssueMatchResponse:
    preview = await service.preview_match(
        description=payload.description,
        ai_summary=payload.ai_summary,
        application_id=payload.application_id,
    )
    response = IssueMatchResponse(application_id=preview.application_id)
    if preview.issue is not None:
        response.issue_code = preview.issue.code
        response.issue_name = preview.issue.name
        response.priority = preview.issue.priority
        response.category = preview.issue.category
    if preview.assignment is not None:
        response.suggested_assignee_id = preview.assignment.assignee_id
        response.routing_reason = preview.assignment.reason
        response.loads = dict(preview.assignment.loads)
    return response


@router.get(
    "/applications/{application_id}/eligible-assignees",
    response_model=list[UserModel],
    summary="Engineers whose department covers the application",
    dependencies=[Depends(role_required(UserRole.ADMIN))],
)
async def list_eligible_assignees(application_id: str, service: TicketServiceDep) -> list[UserModel]:
    try:
        users = service.eligible_assignees(application_id)
    except TicketServiceError as exc:
        raise to_http_exception(exc) from exc
    return [UserModel.model_validate(user) for user in users]
