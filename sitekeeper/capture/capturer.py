"""Screenshot capturer: renders every page of a site variant at every resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from playwright.async_api import Browser, async_playwright

from sitekeeper.comparison.store import ScreenshotStore, Variant
from sitekeeper.models.config import MaintenanceSettings, Resolution, SiteConfig

from .browser import create_capture_context, freeze_page, launch_browser, load_lazy_content
from .static_server import serve_directory

logger = logging.getLogger(__name__)


@dataclass
class CaptureFailure:
    page: str
    resolution: str
    error: str


@dataclass
class CaptureReport:
    variant: Variant
    captured: list[Path] = field(default_factory=list)
    failed: list[CaptureFailure] = field(default_factory=list)


class ScreenshotCapturer:
    """Captures full-page screenshots into a ScreenshotStore.

    The ``before`` variant is rendered from the live site; the ``after``
    variant from the local build, served for the duration of the capture.
    """

    def __init__(self, settings: MaintenanceSettings):
        self.settings = settings

    async def capture(
        self,
        site: SiteConfig,
        variant: Variant,
        store: ScreenshotStore,
        public_dir: Optional[Path] = None,
    ) -> CaptureReport:
        async with async_playwright() as p:
            browser = await launch_browser(p)
            try:
                if public_dir is not None:
                    with serve_directory(Path(public_dir)) as base_url:
                        return await self.capture_all(browser, site, variant, store, base_url)
                return await self.capture_all(browser, site, variant, store, site.website.url)
            finally:
                await browser.close()

    async def capture_all(
        self,
        browser: Browser,
        site: SiteConfig,
        variant: Variant,
        store: ScreenshotStore,
        base_url: str,
    ) -> CaptureReport:
        """Capture each page × resolution; a failed capture is recorded, not raised."""
        report = CaptureReport(variant=variant)
        for page_path in site.pages:
            for resolution in site.selected_resolutions():
                path = store.screenshot_path(variant, page_path, resolution.name)
                try:
                    await self.capture_page(browser, f"{base_url}{page_path}", resolution, path)
                except Exception as e:
                    logger.error("Failed to capture %s (%s): %s", page_path, resolution.name, e)
                    report.failed.append(CaptureFailure(page_path, resolution.name, str(e)))
                    continue
                logger.info("Screenshot saved: %s", path)
                report.captured.append(path)

        logger.info("Captured %d/%d '%s' screenshot(s) for %s",
                    len(report.captured), len(report.captured) + len(report.failed),
                    Variant(variant).value, site.name)
        return report

    async def capture_page(self, browser: Browser, url: str, resolution: Resolution, path: Path) -> Path:
        """Render ``url`` in a fresh context and write a full-page PNG to ``path``."""
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            path.unlink()

        context = await create_capture_context(browser, viewport=resolution.viewport)
        try:
            page = await context.new_page()
            await page.goto(url, wait_until="networkidle", timeout=self.settings.navigation_timeout_ms)
            await freeze_page(page)
            await load_lazy_content(page, self.settings.scroll_step_px)
            await page.wait_for_timeout(self.settings.settle_delay_ms)
            await page.screenshot(path=str(path), full_page=True)
        finally:
            await context.close()
        return path
