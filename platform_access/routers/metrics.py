"""Observability endpoints.

Exposes access-control metrics in Prometheus text format.
"""

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

router = APIRouter()


@router.get(
    "/metrics",
    response_class=PlainTextResponse,
    summary="Access-control metrics (Prometheus)",
)
async def access_metrics(request: Request) -> PlainTextResponse:
    metrics_text = request.app.state.metrics.render_prometheus()
    return PlainTextResponse(content=metrics_text, media_type="text/plain; version=0.0.4")
