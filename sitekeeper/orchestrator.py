"""Pipeline orchestrator: runs the maintenance stages for every selected site."""

from __future__ import annotations

import asyncio
import logging
import tempfile
import time
from datetime import date as date_type
from pathlib import Path
from typing import Awaitable, Callable, Optional

from sitekeeper.capture.capturer import ScreenshotCapturer
from sitekeeper.comparison.comparator import ScreenshotComparator
from sitekeeper.comparison.store import ScreenshotStore, Variant
from sitekeeper.hosting.github import GitHubClient
from sitekeeper.maintenance.branch import create_branch
from sitekeeper.maintenance.modules import update_modules
from sitekeeper.maintenance.publish import cleanup_temp_dir, commit_maintenance
from sitekeeper.maintenance.pull_request import create_pull_request
from sitekeeper.merge_gate import MergeGate
from sitekeeper.models.config import MaintenanceSettings, SiteConfig
from sitekeeper.models.pipeline import ModuleUpdate, SiteRunResult, StageStatus
from sitekeeper.models.verdict import ComparisonVerdict
from sitekeeper.notifications import notify
from sitekeeper.reporter.reporter import Reporter
from sitekeeper.sites import load_sites

logger = logging.getLogger(__name__)


def _default_platform(settings: MaintenanceSettings) -> GitHubClient:
    return GitHubClient(settings.github_token, base_url=settings.github_api_url)


class Orchestrator:
    """Coordinates the per-site maintenance pipeline."""

    def __init__(
        self,
        settings: MaintenanceSettings,
        platform_factory: Callable[[MaintenanceSettings], GitHubClient] = _default_platform,
        capturer: Optional[ScreenshotCapturer] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.platform_factory = platform_factory
        self.capturer = capturer or ScreenshotCapturer(settings)
        self.reporter = Reporter(settings)
        self.sleep = sleep

    def run(self, target: Optional[str] = None, date: Optional[str] = None) -> list[SiteRunResult]:
        """Process every site selected by ``target``; one result per site."""
        return self.run_sites(load_sites(self.settings.data_dir, target), date)

    def run_sites(self, sites: list[SiteConfig], date: Optional[str] = None) -> list[SiteRunResult]:
        return asyncio.run(self._run_pipeline(sites, date or date_type.today().isoformat()))

    async def _run_pipeline(self, sites: list[SiteConfig], date: str) -> list[SiteRunResult]:
        start = time.time()
        logger.info("=== Starting maintenance for %d site(s) (%s) ===", len(sites), date)
        results = []
        for site in sites:
            results.append(await self.process_site(site, date))
        logger.info("=== Maintenance complete in %.1fs ===", time.time() - start)
        return results

    async def process_site(self, site: SiteConfig, date: str) -> SiteRunResult:
        """Run all stages for one site. Never raises; failures land in the result."""
        start = time.time()
        logger.info("=== Processing %s ===", site.title)
        workdir = Path(tempfile.mkdtemp(prefix=f"sitekeeper-{site.name}-"))
        try:
            result = await self._process(site, date, workdir)
        except Exception as e:
            logger.exception("Error while processing %s: %s", site.name, e)
            result = SiteRunResult(site=site.name, outcome=StageStatus.FAIL, reason=str(e))
        finally:
            cleanup_temp_dir(workdir, site.name)
        result.duration_seconds = round(time.time() - start, 2)
        logger.info("=== %s: %s in %.1fs ===", site.name, result.outcome.value, result.duration_seconds)
        return result

    async def _process(self, site: SiteConfig, date: str, workdir: Path) -> SiteRunResult:
        # Stage 1: Update modules and build
        logger.info("--- Stage 1: Update modules ---")
        stage_start = time.time()
        update = await update_modules(site, workdir, self.settings, sleep=self.sleep)
        logger.info("--- Stage 1 complete: %s in %.1fs ---", update.status.value, time.time() - stage_start)
        if not update.ok:
            if update.status == StageStatus.SKIP:
                logger.info("Skipping %s: %s", site.name, update.reason)
            return SiteRunResult(site=site.name, outcome=update.status, reason=update.reason)
        module_update: ModuleUpdate = update.value

        # Stage 2: Capture
        logger.info("--- Stage 2: Capture ---")
        stage_start = time.time()
        store = ScreenshotStore(Path(self.settings.screenshots_dir), site.name, date)
        before = await self.capturer.capture(site, Variant.BEFORE, store)
        after = await self.capturer.capture(site, Variant.AFTER, store,
                                            public_dir=Path(module_update.public_dir))
        logger.info("--- Stage 2 complete: %d before, %d after in %.1fs ---",
                    len(before.captured), len(after.captured), time.time() - stage_start)

        # Stage 3: Compare
        logger.info("--- Stage 3: Compare ---")
        stage_start = time.time()
        comparator = ScreenshotComparator(
            store,
            threshold_percent=self.settings.diff_threshold_percent,
            pixel_tolerance=self.settings.pixel_tolerance,
        )
        verdict = comparator.compare(site)
        logger.info("--- Stage 3 complete: %s in %.1fs ---", verdict.status.value, time.time() - stage_start)

        result = SiteRunResult(
            site=site.name,
            outcome=StageStatus.SUCCESS,
            verdict_status=verdict.status.value,
            diff_pages=list(verdict.diff_pages),
        )

        # Stage 4: Branch, pull request, merge
        logger.info("--- Stage 4: Pull request ---")
        stage_start = time.time()
        await self._open_pull_request(site, date, workdir, module_update, verdict, result)
        logger.info("--- Stage 4 complete in %.1fs ---", time.time() - stage_start)

        # Stage 5: Report and publish
        logger.info("--- Stage 5: Report ---")
        stage_start = time.time()
        self.reporter.write_site_content(site, date, verdict, module_update.changes, pr_url=result.pr_url)
        if self.settings.publish_results:
            commit_maintenance(site.name, date)
        logger.info("--- Stage 5 complete in %.1fs ---", time.time() - stage_start)

        if self.settings.notify:
            await notify(site, result.pr_url, verdict.status.value)
        return result

    async def _open_pull_request(
        self,
        site: SiteConfig,
        date: str,
        workdir: Path,
        module_update: ModuleUpdate,
        verdict: ComparisonVerdict,
        result: SiteRunResult,
    ) -> None:
        async with self.platform_factory(self.settings) as platform:
            branch = await create_branch(site, workdir, date, platform, self.settings)
            if not branch.ok:
                result.outcome, result.reason = StageStatus.FAIL, branch.reason
                return

            body = self.reporter.pull_request_body(site, date, verdict, module_update.changes)
            pr = await create_pull_request(site, date, branch.value, body, platform)
            if not pr.ok:
                result.outcome, result.reason = StageStatus.FAIL, pr.reason
                return
            result.pr_url = pr.value.html_url

            if not self.settings.auto_merge:
                logger.info("Auto-merge disabled; PR left open: %s", result.pr_url)
                return
            gate = MergeGate(
                platform,
                max_attempts=self.settings.merge_max_attempts,
                poll_interval=self.settings.merge_poll_interval_seconds,
                merge_method=self.settings.merge_method,
                sleep=self.sleep,
            )
            merge = await gate.attempt_auto_merge(site, pr.value.number, verdict)
            result.merge_outcome = merge.outcome.value
            result.reason = merge.reason
            logger.info("Merge outcome for %s: %s %s", site.name, merge.outcome.value, merge.reason)
