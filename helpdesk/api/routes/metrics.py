from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from helpdesk.metrics import metrics_registry, render_prometheus

router = APIRouter(tags=["observability"])

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


@router.get("/metrics", response_class=PlainTextResponse, summary="Prometheus metrics")
async def metrics(request: Request) -> PlainTextResponse:
    registry = getattr(request.app.state, "metrics", None) or metrics_registry
    return PlainTextResponse(render_prometheus(registry), media_type=PROMETHEUS_CONTENT_TYPE)
