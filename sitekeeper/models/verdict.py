"""Comparison verdict data structures produced by the screenshot comparator."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VerdictStatus(str, Enum):
    OK = "OK"
    FAIL = "Fail"


class PageDeviceResult(BaseModel):
    """One verdict cell: a page rendered at one resolution."""

    model_config = ConfigDict(frozen=True)

    page: str
    resolution: str
    num_diff_pixels: Optional[int] = None
    diff_percent: Optional[float] = None  # rounded to 2 decimals
    has_problem: bool = False
    error: Optional[str] = None
    before_size: Optional[tuple[int, int]] = None
    after_size: Optional[tuple[int, int]] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_document(self) -> dict[str, Any]:
        if self.error is not None:
            doc: dict[str, Any] = {"error": self.error}
            if self.before_size and self.after_size:
                doc["beforeSize"] = list(self.before_size)
                doc["afterSize"] = list(self.after_size)
            return doc
        return {
            "diffPercent": self.diff_percent,
            "numDiffPixels": self.num_diff_pixels,
            "hasProblem": self.has_problem,
        }

    @classmethod
    def from_document(cls, page: str, resolution: str, doc: dict[str, Any]) -> "PageDeviceResult":
        if "error" in doc:
            before = doc.get("beforeSize")
            after = doc.get("afterSize")
            return cls(
                page=page, resolution=resolution, error=doc["error"],
                before_size=tuple(before) if before else None,
                after_size=tuple(after) if after else None,
            )
        return cls(
            page=page,
            resolution=resolution,
            num_diff_pixels=doc.get("numDiffPixels"),
            diff_percent=doc.get("diffPercent"),
            has_problem=bool(doc.get("hasProblem", False)),
        )


class ComparisonVerdict(BaseModel):
    """Aggregate result of comparing every page/resolution of one site on one run.

    ``details`` maps page -> resolution -> cell and is read-only at both levels.
    """

    model_config = ConfigDict(frozen=True)

    status: VerdictStatus
    diff_pages: tuple[str, ...] = ()
    timestamp: str
    details: dict[str, dict[str, PageDeviceResult]] = Field(default_factory=dict, validate_default=True)

    @field_validator("details", mode="after")
    @classmethod
    def freeze_details(cls, v: dict) -> MappingProxyType:
        return MappingProxyType({page: MappingProxyType(dict(by_res)) for page, by_res in v.items()})

    @property
    def passed(self) -> bool:
        return self.status == VerdictStatus.OK

    def cells(self) -> list[PageDeviceResult]:
        return [cell for by_res in self.details.values() for cell in by_res.values()]

    def problem_cells(self) -> list[PageDeviceResult]:
        return [cell for cell in self.cells() if cell.has_problem]

    def error_cells(self) -> list[PageDeviceResult]:
        return [cell for cell in self.cells() if cell.is_error]

    def to_document(self) -> dict[str, Any]:
        """Machine-readable result document (camelCase keys)."""
        return {
            "status": self.status.value,
            "diffPages": list(self.diff_pages),
            "timestamp": self.timestamp,
            "details": {
                page: {res: cell.to_document() for res, cell in by_res.items()}
                for page, by_res in self.details.items()
            },
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "ComparisonVerdict":
        details = {
            page: {
                res: PageDeviceResult.from_document(page, res, cell)
                for res, cell in by_res.items()
            }
            for page, by_res in doc.get("details", {}).items()
        }
        return cls(
            status=VerdictStatus(doc["status"]),
            diff_pages=tuple(doc.get("diffPages", [])),
            timestamp=doc["timestamp"],
            details=details,
        )
