from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class VersionInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str
    git_commit: str = Field(alias="gitCommit")
    build_time: str = Field(alias="buildTime")
