from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import structlog
from httpx import ASGITransport, AsyncClient
from structlog.testing import LogCapture

from website.config import get_settings
from website.main import create_app, create_metrics_app
from website.observability.logging import close_access_log
from website.observability.metrics import reset_metrics

STYLESHEET = "body { margin: 0; padding: 0; font-family: sans-serif; }\n" * 40

_ENV_VARS = (
    "DEBUG",
    "PORT",
    "METRICS_PORT",
    "WEBROOT",
    "USE_MEMORY",
    "LOG_FILE_PATH",
    "ENABLE_GZIP",
    "GZIP_MIN_SIZE",
    "CACHE_MAX_AGE",
    "VERSION",
    "GIT_COMMIT",
    "BUILD_TIME",
)


def build_site(root: Path) -> Path:
    (root / "blog" / "hello-world").mkdir(parents=True)
    (root / "css").mkdir()
    (root / "empty").mkdir()
    (root / "index.html").write_text("<h1>Home</h1>", encoding="utf-8")
    (root / "404.html").write_text("<h1>Not here</h1>", encoding="utf-8")
    (root / "blog" / "index.html").write_text("<h1>Blog</h1>", encoding="utf-8")
    (root / "blog" / "hello-world" / "index.html").write_text("<h1>Hello</h1>", encoding="utf-8")
    (root / "css" / "site.css").write_text(STYLESHEET, encoding="utf-8")
    (root / "robots.txt").write_text("User-agent: *\n", encoding="utf-8")
    return root


@pytest.fixture
def web_root(tmp_path: Path) -> Path:
    return build_site(tmp_path / "public")


@pytest.fixture
def access_log_path(tmp_path: Path) -> Path:
    return tmp_path / "logs" / "access.log"


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch, web_root: Path, access_log_path: Path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("WEBROOT", str(web_root))
    monkeypatch.setenv("LOG_FILE_PATH", str(access_log_path))
    get_settings.cache_clear()
    reset_metrics()

    yield

    close_access_log()
    get_settings.cache_clear()


async def _client(app) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def api_client() -> AsyncIterator[AsyncClient]:
    async for client in _client(create_app()):
        yield client


@pytest.fixture
async def memory_client(monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[AsyncClient]:
    monkeypatch.setenv("USE_MEMORY", "true")
    get_settings.cache_clear()
    async for client in _client(create_app()):
        yield client


@pytest.fixture
async def ops_client() -> AsyncIterator[AsyncClient]:
    async for client in _client(create_metrics_app()):
        yield client


@pytest.fixture
def captured_logs() -> list[dict]:
    capture = LogCapture()
    structlog.configure(processors=[structlog.contextvars.merge_contextvars, capture])
    yield capture.entries
    structlog.reset_defaults()
