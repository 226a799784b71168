from __future__ import annotations

import logging
from email.utils import format_datetime, parsedate_to_datetime

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException
from starlette.types import Scope

from website.config import Settings
from website.services.static_files import FileData, MemoryStore, WebRootError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["site"])


def _strip_weak(tag: str) -> str:
    tag = tag.strip()
    return tag[2:] if tag.startswith("W/") else tag


def _not_modified(request: Request, fd: FileData) -> bool:
    if_none_match = request.headers.get("if-none-match")
    if if_none_match is not None:
        # Weak comparison: W/"x" matches "x".
        tags = {_strip_weak(tag) for tag in if_none_match.split(",")}
        return "*" in tags or fd.etag in tags

    if_modified_since = request.headers.get("if-modified-since")
    if if_modified_since:
        try:
            since = parsedate_to_datetime(if_modified_since)
        except (TypeError, ValueError):
            return False
        if since.tzinfo is None:
            return False
        return fd.mod_time.replace(microsecond=0) <= since
    return False


class _UnsatisfiableRange(Exception):
    pass


def _parse_range(header: str, size: int) -> tuple[int, int] | None:
    """Inclusive byte span of a single-range request, or None to serve the whole body.

    Malformed and multi-range headers are ignored; a range outside the body is unsatisfiable.
    """

    unit, _, spec = header.partition("=")
    if unit.strip().lower() != "bytes" or "," in spec:
        return None
    start_text, sep, end_text = spec.strip().partition("-")
    if not sep:
        return None

    try:
        if not start_text:
            suffix = int(end_text)
            if suffix <= 0 or size == 0:
                raise _UnsatisfiableRange(header)
            return max(size - suffix, 0), size - 1
        start = int(start_text)
        end = int(end_text) if end_text else size - 1
    except ValueError:
        return None

    if start < 0 or start >= size or end < start:
        raise _UnsatisfiableRange(header)
    return start, min(end, size - 1)


def _file_headers(fd: FileData, cache_max_age: int) -> dict[str, str]:
    return {
        "Cache-Control": f"max-age={cache_max_age}",
        "X-Content-Type-Options": "nosniff",
        "Last-Modified": format_datetime(fd.mod_time, usegmt=True),
        "ETag": fd.etag,
        "Content-Type": fd.content_type,
    }


class SiteFiles(StaticFiles):
    """StaticFiles whose bare 404 matches memory mode when the site has no 404.html."""

    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            return await super().get_response(path, scope)
        except HTTPException as exc:
            if exc.status_code != 404:
                raise
            return _not_found()


def _not_found() -> Response:
    return PlainTextResponse("404 page not found", status_code=404)


@router.api_route("/{path:path}", methods=["GET", "HEAD"], include_in_schema=False)
async def serve_from_memory(request: Request) -> Response:
    store: MemoryStore = request.app.state.memory_store
    cache_max_age: int = request.app.state.settings.cache_max_age

    resolved = store.lookup(request.url.path)
    if resolved is None:
        logger.debug("Returning 404 for path: %s", request.url.path)
        return _not_found()

    path, fd = resolved
    headers = _file_headers(fd, cache_max_age)

    if _not_modified(request, fd):
        headers.pop("Content-Type")
        return Response(status_code=304, headers=headers)

    headers["Accept-Ranges"] = "bytes"
    body = fd.content
    status_code = 200

    range_header = request.headers.get("range")
    if range_header:
        try:
            span = _parse_range(range_header, len(fd.content))
        except _UnsatisfiableRange:
            return Response(status_code=416, headers={"Content-Range": f"bytes */{len(fd.content)}"})
        if span is not None:
            start, end = span
            body = fd.content[start : end + 1]
            status_code = 206
            headers["Content-Range"] = f"bytes {start}-{end}/{len(fd.content)}"

    headers["Content-Length"] = str(len(body))
    if request.method == "HEAD":
        return Response(content=b"", status_code=status_code, headers=headers)

    logger.debug("Serving %s from memory", path)
    return Response(content=body, status_code=status_code, headers=headers)


def mount_site(app: FastAPI, settings: Settings, store: MemoryStore | None = None) -> None:
    """Attach static content at ``/``: the in-memory store if given, else the web root on disk."""

    if store is not None:
        app.state.memory_store = store
        app.include_router(router)
        logger.info("Serving files from memory")
        return

    web_root = settings.web_root_path
    if not web_root.is_dir():
        raise WebRootError(f"Web root {web_root} is not a directory")
    app.mount("/", SiteFiles(directory=web_root, html=True), name="site")
    logger.info("Serving files directly from filesystem: %s", web_root)
