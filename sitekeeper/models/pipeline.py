"""Per-site pipeline data structures: module changes, stage outcomes, run results."""

from __future__ import annotations

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ModuleChangeRecord(BaseModel):
    file: str
    changes: list[str] = Field(default_factory=list)  # diff lines, in order


class StageStatus(str, Enum):
    SUCCESS = "success"
    SKIP = "skip"
    FAIL = "fail"


class StageOutcome(BaseModel, Generic[T]):
    """Tagged result of one pipeline stage."""

    status: StageStatus
    value: Optional[T] = None
    reason: str = ""

    @classmethod
    def success(cls, value: Optional[T] = None, reason: str = "") -> "StageOutcome[T]":
        return cls(status=StageStatus.SUCCESS, value=value, reason=reason)

    @classmethod
    def skip(cls, reason: str) -> "StageOutcome[T]":
        return cls(status=StageStatus.SKIP, reason=reason)

    @classmethod
    def fail(cls, reason: str) -> "StageOutcome[T]":
        return cls(status=StageStatus.FAIL, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == StageStatus.SUCCESS


class ModuleUpdate(BaseModel):
    """Checkout state after a successful module update and build."""

    workdir: str
    public_dir: str
    changes: list[ModuleChangeRecord] = Field(default_factory=list)


class SiteRunResult(BaseModel):
    site: str
    outcome: StageStatus
    reason: str = ""
    verdict_status: Optional[str] = None
    diff_pages: list[str] = Field(default_factory=list)
    pr_url: Optional[str] = None
    merge_outcome: Optional[str] = None
    duration_seconds: float = 0.0
