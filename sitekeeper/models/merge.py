"""Merge gate outcomes."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class MergeOutcome(str, Enum):
    MERGED = "merged"
    ALREADY_MERGED = "already_merged"
    SKIPPED_DUE_TO_FAILURE = "skipped_due_to_failure"
    BLOCKED = "blocked"
    ERROR = "error"


class MergeReadiness(str, Enum):
    """Classification of the platform's mergeable_state signal."""

    CLEAN = "clean"
    DIRTY = "dirty"
    BLOCKED = "blocked"
    PENDING = "pending"  # unknown, unstable, behind, null... anything else

    @classmethod
    def classify(cls, state: Optional[str]) -> "MergeReadiness":
        if state == "clean":
            return cls.CLEAN
        if state == "dirty":
            return cls.DIRTY
        if state == "blocked":
            return cls.BLOCKED
        return cls.PENDING


class MergeResult(BaseModel):
    outcome: MergeOutcome
    reason: str = ""
    category: Optional[str] = None  # hosting error category, when one applies
    pr_number: Optional[int] = None
    merge_sha: Optional[str] = None
    attempts: int = 0
    branch_deleted: Optional[bool] = None

    @property
    def merged(self) -> bool:
        return self.outcome in (MergeOutcome.MERGED, MergeOutcome.ALREADY_MERGED)
