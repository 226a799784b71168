import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "t", "true", "yes", "on"}
_FALSE_VALUES = {"0", "f", "false", "no", "off"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    debug: bool = Field(default=False, alias="DEBUG")
    port: int = Field(default=8080, alias="PORT")
    metrics_port: int = Field(default=9090, alias="METRICS_PORT")
    web_root: str = Field(default="/app/public", alias="WEBROOT")
    use_memory: bool = Field(default=False, alias="USE_MEMORY")
    log_file_path: str = Field(default="/var/log/access.log", alias="LOG_FILE_PATH")

    enable_gzip: bool = Field(default=True, alias="ENABLE_GZIP")
    gzip_min_size: int = Field(default=500, alias="GZIP_MIN_SIZE")
    cache_max_age: int = Field(default=31536000, alias="CACHE_MAX_AGE")

    # Build metadata, injected into the image environment at build time.
    version: str = Field(default="MISSING VERSION INFO", alias="VERSION")
    git_commit: str = Field(default="MISSING GIT COMMIT", alias="GIT_COMMIT")
    build_time: str = Field(default="MISSING BUILD TIME", alias="BUILD_TIME")

    @field_validator("port", "metrics_port", "gzip_min_size", "cache_max_age", mode="before")
    @classmethod
    def _lenient_int(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, str):
            return value
        try:
            return int(value.strip())
        except ValueError:
            default = cls.model_fields[info.field_name].default
            logger.warning("Error parsing %s=%r as int, using default value: %s", info.field_name, value, default)
            return default

    @field_validator("debug", "use_memory", "enable_gzip", mode="before")
    @classmethod
    def _lenient_bool(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, str):
            return value
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        default = cls.model_fields[info.field_name].default
        logger.warning("Error parsing %s=%r as bool, using default value: %s", info.field_name, value, default)
        return default

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _default_log_path(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, str) and not value.strip():
            return cls.model_fields[info.field_name].default
        return value

    @property
    def web_root_path(self) -> Path:
        return Path(self.web_root)

    @property
    def log_path(self) -> Path:
        return Path(self.log_file_path)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
