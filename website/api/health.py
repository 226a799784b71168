from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from website.config import Settings
from website.models.schemas import VersionInfo


router = APIRouter(tags=["health"])


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz() -> str:
    return "ok"


@router.get("/version", response_model=VersionInfo, response_model_by_alias=True)
async def version(request: Request) -> VersionInfo:
    structlog.get_logger("health").debug("version_requested")
    settings: Settings = request.app.state.settings
    return VersionInfo(
        version=settings.version,
        git_commit=settings.git_commit,
        build_time=settings.build_time,
    )
