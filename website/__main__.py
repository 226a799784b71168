from __future__ import annotations

import argparse
import asyncio
import logging

import structlog
import uvicorn

from website.config import Settings, get_settings
from website.main import create_app, create_metrics_app
from website.observability.logging import close_access_log, configure_logging


def _log_configuration(settings: Settings) -> None:
    structlog.get_logger("website").info(
        "configuration",
        debug=settings.debug,
        port=settings.port,
        metrics_port=settings.metrics_port,
        web_root=settings.web_root,
        use_memory=settings.use_memory,
        log_file_path=settings.log_file_path,
        enable_gzip=settings.enable_gzip,
    )


async def serve(settings: Settings, host: str) -> None:
    level = "debug" if settings.debug else "info"
    site = uvicorn.Server(
        uvicorn.Config(create_app(settings), host=host, port=settings.port, log_config=None, log_level=level)
    )
    ops = uvicorn.Server(
        uvicorn.Config(
            create_metrics_app(settings), host=host, port=settings.metrics_port, log_config=None, log_level=level
        )
    )
    log = structlog.get_logger("website")
    log.info("site_server_starting", web_root=settings.web_root, port=settings.port)
    log.info("metrics_server_starting", port=settings.metrics_port)
    await asyncio.gather(site.serve(), ops.serve())


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the generated static site with access logs and metrics")
    parser.add_argument("--host", default="0.0.0.0", help="Address both servers bind to")
    args = parser.parse_args()

    # Before settings load, so warnings about malformed env values are rendered as JSON too.
    configure_logging(logging.INFO)
    settings = get_settings()
    if settings.debug:
        configure_logging(logging.DEBUG)
        _log_configuration(settings)

    try:
        asyncio.run(serve(settings, host=args.host))
    finally:
        close_access_log()


if __name__ == "__main__":
    main()
