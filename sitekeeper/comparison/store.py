"""Screenshot store: deterministic on-disk layout for captures, diffs and results.

Layout under the screenshots root::

    <site>/<date>/before/<page>_<resolution>.png
    <site>/<date>/after/<page>_<resolution>.png
    <site>/<date>/compare/<page>_<resolution>_diff.png
    <site>/<date>/compare/result.json
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from sitekeeper.comparison.image_diff import Bitmap
from sitekeeper.models.config import page_file_name
from sitekeeper.models.verdict import ComparisonVerdict

logger = logging.getLogger(__name__)


class Variant(str, Enum):
    BEFORE = "before"
    AFTER = "after"


class BitmapSource(Protocol):
    def load(self, page: str, resolution: str) -> Optional[Bitmap]:
        """Return the bitmap for a page/resolution, or None if it was never captured."""
        ...


class FileBitmapSource:
    """Reads one variant's screenshots from the store."""

    def __init__(self, store: "ScreenshotStore", variant: Variant):
        self.store = store
        self.variant = variant

    def load(self, page: str, resolution: str) -> Optional[Bitmap]:
        path = self.store.screenshot_path(self.variant, page, resolution)
        if not path.exists():
            return None
        return Bitmap.load(path)


class ScreenshotStore:
    """Paths and persistence for one site on one run date."""

    def __init__(self, root: Path, site_name: str, date: str):
        self.root = Path(root)
        self.site_name = site_name
        self.date = date

    @property
    def run_dir(self) -> Path:
        return self.root / self.site_name / self.date

    def variant_dir(self, variant: Variant) -> Path:
        return self.run_dir / Variant(variant).value

    @property
    def compare_dir(self) -> Path:
        return self.run_dir / "compare"

    @property
    def result_path(self) -> Path:
        return self.compare_dir / "result.json"

    def screenshot_path(self, variant: Variant, page: str, resolution: str) -> Path:
        return self.variant_dir(variant) / f"{page_file_name(page)}_{resolution}.png"

    def diff_path(self, page: str, resolution: str) -> Path:
        return self.compare_dir / f"{page_file_name(page)}_{resolution}_diff.png"

    def source(self, variant: Variant) -> FileBitmapSource:
        return FileBitmapSource(self, variant)

    def save_diff(self, page: str, resolution: str, bitmap: Bitmap) -> Path:
        path = self.diff_path(page, resolution)
        bitmap.save(path)
        return path

    def clear_diffs(self) -> int:
        """Remove diff images left by an earlier comparison of the same site/date."""
        removed = 0
        if self.compare_dir.exists():
            for path in self.compare_dir.glob("*_diff.png"):
                path.unlink()
                removed += 1
        if removed:
            logger.debug("Removed %d stale diff image(s) from %s", removed, self.compare_dir)
        return removed

    def load_result(self) -> Optional[ComparisonVerdict]:
        """Read back the persisted verdict for this site/date, if any."""
        if not self.result_path.exists():
            return None
        try:
            with open(self.result_path) as f:
                data = json.load(f)
            return ComparisonVerdict.from_document(data)
        except Exception as e:
            logger.warning("Failed to load comparison result %s: %s", self.result_path, e)
            return None
