from __future__ import annotations

import logging
import uuid
from time import perf_counter
from typing import Any, Callable

import structlog
from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import PlainTextResponse

from website.observability.access_log import AccessRecord, resolve_client_ip
from website.observability.logging import ACCESS_LOGGER_NAME
from website.observability.metrics import get_metrics
from website.services.paths import sanitize_path


class RequestContextMiddleware:
    """Adds request_id context, access log lines, and Prometheus HTTP metrics."""

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app
        # Avoid self-observing the scrape endpoint.
        self._excluded_metric_paths = {"/metrics"}
        self._access_logger = logging.getLogger(ACCESS_LOGGER_NAME)

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())
        path = sanitize_path(scope.get("path") or "/")
        method = scope.get("method") or "-"

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=path,
            method=method,
        )

        start = perf_counter()
        status_code: int = 500
        response_size = 0
        response_started = False

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code, response_size, response_started

            if message.get("type") == "http.response.start":
                response_started = True
                status_code = int(message.get("status", 500))
                headers = MutableHeaders(scope=message)
                headers["X-Request-ID"] = request_id
            elif message.get("type") == "http.response.body":
                response_size += len(message.get("body", b""))

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            # Logged here while request_id is still bound to the context.
            structlog.get_logger("website").exception("unhandled_exception")
            if response_started:
                raise
            response = PlainTextResponse("Internal Server Error", status_code=500)
            await response(scope, receive, send_wrapper)
        finally:
            elapsed = perf_counter() - start

            # Update metrics first so they update even if logging misbehaves.
            if path not in self._excluded_metric_paths:
                get_metrics().observe_http_request(path=path, elapsed_seconds=elapsed)

            self._access_logger.info(_access_record(scope, status_code, response_size).format())

            structlog.get_logger("access").info(
                "http_request",
                status_code=status_code,
                elapsed_ms=round(elapsed * 1000.0, 2),
            )

            structlog.contextvars.clear_contextvars()


def _access_record(scope: dict[str, Any], status_code: int, response_size: int) -> AccessRecord:
    headers = Headers(scope=scope)
    client = scope.get("client")
    peer = client[0] if client else None

    raw_path = (scope.get("raw_path") or b"").split(b"?", 1)[0]
    uri = raw_path.decode("latin-1") or scope.get("path") or "/"
    query = scope.get("query_string", b"")
    if query:
        uri = f"{uri}?{query.decode('latin-1')}"

    return AccessRecord(
        vhost=headers.get("host", ""),
        client_ip=resolve_client_ip(headers, peer),
        method=scope.get("method") or "-",
        uri=uri,
        protocol=f"HTTP/{scope.get('http_version', '1.1')}",
        status_code=status_code,
        response_size=response_size,
        referer=headers.get("referer", ""),
        user_agent=headers.get("user-agent", ""),
    )
