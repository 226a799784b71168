from __future__ import annotations

from fastapi import APIRouter, Response

from website.observability.metrics import get_metrics


router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def metrics() -> Response:
    payload, content_type = get_metrics().render()
    return Response(content=payload, media_type=content_type)
