from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, field_validator

T = TypeVar("T")


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


def mask_secret(value: str, visible: int = 4) -> str:
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]


class LoginResult(BaseModel):
    token: str
    user_id: int | None = None
    expires_in: int | None = None


class VulnerabilitySummary(BaseModel):
    model_config = {"frozen": True}

    id: int
    title: str
    severity: Severity
    cve: str | None = None
    source: str
    tags: tuple[str, ...] = ()
    pushed: bool = False
    updated_at: datetime

    @field_validator("cve", mode="before")
    @classmethod
    def _blank_cve(cls, value: str | None) -> str | None:
        return value or None


class VulnerabilityDetail(VulnerabilitySummary):
    key: str | None = None
    description: str = ""
    solutions: str = ""
    disclosure: str = ""
    reference_links: tuple[str, ...] = ()
    github_search: tuple[str, ...] = ()
    reasons: tuple[str, ...] = ()
    created_at: datetime


class SecurityNotice(BaseModel):
    model_config = {"frozen": True}

    id: int
    key: str
    title: str
    product_name: str = ""
    risk_level: str
    source: str
    source_name: str
    is_zero_day: bool = False
    publish_time: str = ""
    detail_link: str = ""
    pushed: bool = False
    created_at: datetime
    updated_at: datetime


class Page(BaseModel, Generic[T]):
    data: list[T] = Field(default_factory=list)
    total_count: int = 0


class SyncTaskConfig(BaseModel):
    id: int | None = None
    name: str = ""
    interval_minutes: int = 60
    status: bool = True

    def payload(self) -> dict:
        return self.model_dump(include={"name", "interval_minutes", "status"})


class DingBotConfig(BaseModel):
    id: int | None = None
    access_token: str = ""
    secret_token: str = ""
    status: bool = True

    def payload(self) -> dict:
        return self.model_dump(include={"access_token", "secret_token", "status"})

    def masked(self) -> dict:
        return {
            "access_token": mask_secret(self.access_token),
            "secret_token": mask_secret(self.secret_token),
            "status": self.status,
        }


class PluginDescriptor(BaseModel):
    name: str
    display_name: str
    link: str = ""
