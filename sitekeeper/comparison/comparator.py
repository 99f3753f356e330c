"""Screenshot comparator: folds page × resolution diffs into a verdict."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from sitekeeper.comparison.image_diff import (
    DEFAULT_TOLERANCE,
    Bitmap,
    DimensionMismatch,
    diff,
)
from sitekeeper.comparison.store import BitmapSource, ScreenshotStore, Variant
from sitekeeper.models.config import SiteConfig
from sitekeeper.models.verdict import ComparisonVerdict, PageDeviceResult, VerdictStatus
from sitekeeper.reporter.json_report import write_result_document

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_PERCENT = 0.5


@dataclass(frozen=True)
class CellComparison:
    """A verdict cell plus the diff bitmap that produced it (None for error cells)."""

    result: PageDeviceResult
    diff: Optional[Bitmap] = None


def compare_cell(
    page: str,
    resolution: str,
    before: BitmapSource,
    after: BitmapSource,
    tolerance: float = DEFAULT_TOLERANCE,
    threshold_percent: float = DEFAULT_THRESHOLD_PERCENT,
) -> CellComparison:
    """Compare one page at one resolution. Never raises for bad inputs."""
    try:
        before_bitmap = before.load(page, resolution)
        after_bitmap = after.load(page, resolution)
    except Exception as e:
        return CellComparison(PageDeviceResult(
            page=page, resolution=resolution, error=f"Unreadable screenshot: {e}",
        ))

    missing = [
        name for name, bitmap in (("before", before_bitmap), ("after", after_bitmap))
        if bitmap is None
    ]
    if missing:
        return CellComparison(PageDeviceResult(
            page=page, resolution=resolution,
            error=f"Missing screenshot: {', '.join(missing)}",
        ))

    try:
        pixel_diff = diff(before_bitmap, after_bitmap, tolerance)
    except DimensionMismatch as e:
        return CellComparison(PageDeviceResult(
            page=page, resolution=resolution, error=str(e),
            before_size=e.before_size, after_size=e.after_size,
        ))
    except Exception as e:
        logger.exception("Diff failed for %s (%s)", page, resolution)
        return CellComparison(PageDeviceResult(
            page=page, resolution=resolution,
            error=f"Comparison failed: {type(e).__name__}: {e}",
        ))

    diff_percent = pixel_diff.diff_ratio * 100
    return CellComparison(
        PageDeviceResult(
            page=page,
            resolution=resolution,
            num_diff_pixels=pixel_diff.num_diff_pixels,
            diff_percent=round(diff_percent, 2),
            has_problem=diff_percent > threshold_percent,
        ),
        diff=pixel_diff.diff,
    )


def build_verdict(cells: Iterable[PageDeviceResult], timestamp: str) -> ComparisonVerdict:
    """Derive status, failing pages and details from a list of cells."""
    details: dict[str, dict[str, PageDeviceResult]] = {}
    diff_pages: list[str] = []
    for cell in cells:
        details.setdefault(cell.page, {})[cell.resolution] = cell
        if cell.has_problem and cell.page not in diff_pages:
            diff_pages.append(cell.page)

    return ComparisonVerdict(
        status=VerdictStatus.FAIL if diff_pages else VerdictStatus.OK,
        diff_pages=tuple(diff_pages),
        timestamp=timestamp,
        details=details,
    )


class ScreenshotComparator:
    """Compares a site's before/after captures and persists the verdict."""

    def __init__(
        self,
        store: ScreenshotStore,
        threshold_percent: float = DEFAULT_THRESHOLD_PERCENT,
        pixel_tolerance: float = DEFAULT_TOLERANCE,
    ):
        self.store = store
        self.threshold_percent = threshold_percent
        self.pixel_tolerance = pixel_tolerance

    def compare(
        self,
        site: SiteConfig,
        before: BitmapSource | None = None,
        after: BitmapSource | None = None,
    ) -> ComparisonVerdict:
        """Compare every page × resolution of ``site``; sources default to the store."""
        before = before or self.store.source(Variant.BEFORE)
        after = after or self.store.source(Variant.AFTER)

        comparisons: list[CellComparison] = []
        for page in site.pages:
            for resolution in site.selected_resolutions():
                comparison = compare_cell(
                    page, resolution.name, before, after,
                    tolerance=self.pixel_tolerance,
                    threshold_percent=self.threshold_percent,
                )
                self._log_cell(comparison.result)
                comparisons.append(comparison)

        timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        verdict = build_verdict((c.result for c in comparisons), timestamp)

        self.store.clear_diffs()
        for comparison in comparisons:
            cell = comparison.result
            if cell.has_problem and comparison.diff is not None:
                path = self.store.save_diff(cell.page, cell.resolution, comparison.diff)
                logger.info("Diff saved (%.2f%% different): %s", cell.diff_percent, path)

        write_result_document(verdict, self.store.result_path)
        logger.info("Comparison result for %s: %s (%d failing page(s)) -> %s",
                    site.name, verdict.status.value, len(verdict.diff_pages),
                    self.store.result_path)
        return verdict

    @staticmethod
    def _log_cell(cell: PageDeviceResult) -> None:
        if cell.error:
            logger.warning("Cannot compare %s (%s): %s", cell.page, cell.resolution, cell.error)
        elif cell.has_problem:
            logger.warning("%s (%s): %.2f%% different", cell.page, cell.resolution, cell.diff_percent)
        else:
            logger.info("%s (%s): %.2f%% different", cell.page, cell.resolution, cell.diff_percent)
