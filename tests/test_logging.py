import logging
import sys
from logging.handlers import QueueHandler

import website.__main__ as entrypoint
from website.config import Settings
from website.observability.logging import ACCESS_LOGGER_NAME, configure_access_log, flush_access_log


def test_access_logger_enqueues_instead_of_writing_inline(access_log_path) -> None:
    access_logger = configure_access_log(access_log_path)

    assert [type(handler) for handler in access_logger.handlers] == [QueueHandler]
    assert access_logger is logging.getLogger(ACCESS_LOGGER_NAME)
    assert access_logger.propagate is False


def test_flush_writes_queued_lines(access_log_path) -> None:
    access_logger = configure_access_log(access_log_path)
    access_logger.info("first line")
    access_logger.info("second line")

    flush_access_log()
    assert access_log_path.read_text(encoding="utf-8").splitlines() == ["first line", "second line"]


def test_reconfiguring_switches_files(tmp_path, access_log_path) -> None:
    configure_access_log(access_log_path).info("old")
    other = tmp_path / "other" / "access.log"
    configure_access_log(other).info("new")

    flush_access_log()
    assert access_log_path.read_text(encoding="utf-8") == "old\n"
    assert other.read_text(encoding="utf-8") == "new\n"


def test_logging_is_configured_before_settings_are_read(monkeypatch) -> None:
    calls: list[str] = []

    async def _serve(settings, host) -> None:
        calls.append(f"serve:{host}")

    def _settings() -> Settings:
        calls.append("settings")
        return Settings(_env_file=None, DEBUG="true")

    monkeypatch.setattr(sys, "argv", ["website", "--host", "127.0.0.1"])
    monkeypatch.setattr(entrypoint, "configure_logging", lambda level: calls.append(f"logging:{level}"))
    monkeypatch.setattr(entrypoint, "get_settings", _settings)
    monkeypatch.setattr(entrypoint, "_log_configuration", lambda settings: calls.append("config"))
    monkeypatch.setattr(entrypoint, "serve", _serve)

    entrypoint.main()

    assert calls == [
        f"logging:{logging.INFO}",
        "settings",
        f"logging:{logging.DEBUG}",
        "config",
        "serve:127.0.0.1",
    ]


def test_configure_logging_repeat_call_only_changes_level(monkeypatch) -> None:
    import structlog

    from website.observability import logging as obs_logging

    names = ["", "uvicorn", "uvicorn.error", "uvicorn.access"]
    loggers = {name: logging.getLogger(name) for name in names}
    saved = {name: (lg.handlers[:], lg.level, lg.propagate) for name, lg in loggers.items()}
    monkeypatch.setattr(obs_logging, "_CONFIGURED", False)
    try:
        obs_logging.configure_logging(logging.INFO)
        handlers = logging.getLogger().handlers[:]

        obs_logging.configure_logging(logging.DEBUG)
        assert logging.getLogger().handlers == handlers
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("uvicorn.error").level == logging.DEBUG
        assert logging.getLogger("uvicorn.access").handlers == handlers
    finally:
        for name, (handlers, level, propagate) in saved.items():
            logger = logging.getLogger(name)
            logger.handlers = handlers
            logger.setLevel(level)
            logger.propagate = propagate
        structlog.reset_defaults()
