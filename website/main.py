from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.middleware.gzip import GZipMiddleware

from website.api.health import router as health_router
from website.api.metrics import router as metrics_router
from website.api.site import mount_site
from website.config import Settings, get_settings
from website.observability.logging import configure_access_log
from website.observability.middleware import RequestContextMiddleware
from website.services.static_files import MemoryStore


async def _unhandled_exception(request: Request, exc: Exception) -> PlainTextResponse:
    structlog.get_logger("website").error(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        exc_info=exc,
    )
    return PlainTextResponse("Internal Server Error", status_code=500)


def create_app(settings: Settings | None = None, store: MemoryStore | None = None) -> FastAPI:
    """Build the site app: static content behind access logging, metrics and gzip.

    Content is served from memory when USE_MEMORY is set (loaded here) or a preloaded ``store`` is given.
    """

    settings = settings or get_settings()
    configure_access_log(settings.log_path)

    if settings.use_memory and store is None:
        store = MemoryStore.load(settings.web_root_path)

    app = FastAPI(title="Support Tools Website", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    # Unhandled errors become a plain 500 inside the request middleware.
    app.add_middleware(RequestContextMiddleware)
    if settings.enable_gzip:
        # Added last so it wraps the access logger; logged sizes stay uncompressed.
        app.add_middleware(GZipMiddleware, minimum_size=settings.gzip_min_size)

    app.include_router(metrics_router)
    mount_site(app, settings, store=store)
    return app


def create_metrics_app(settings: Settings | None = None) -> FastAPI:
    """Build the operational app served on the metrics port."""

    settings = settings or get_settings()
    app = FastAPI(title="Support Tools Website (ops)", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.add_exception_handler(Exception, _unhandled_exception)
    app.include_router(metrics_router)
    app.include_router(health_router)
    return app
