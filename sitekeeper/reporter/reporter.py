"""Report generation orchestration."""

from __future__ import annotations

import logging
from datetime import date as date_type
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sitekeeper.models.config import MaintenanceSettings, SiteConfig
from sitekeeper.models.pipeline import ModuleChangeRecord
from sitekeeper.models.verdict import ComparisonVerdict

from .markdown import generate_full_report

logger = logging.getLogger(__name__)


class Reporter:
    """Renders maintenance reports for pull requests and the site content tree."""

    def __init__(self, settings: MaintenanceSettings):
        self.settings = settings

    def _render(self, site: SiteConfig, date: str, verdict: ComparisonVerdict,
                changes: list[ModuleChangeRecord], pr_url: Optional[str]) -> str:
        return generate_full_report(
            site_name=site.name,
            date=date,
            verdict=verdict,
            changes=changes,
            pages=site.pages,
            resolutions=site.screenshots,
            pr_url=pr_url,
            url_prefix=self.settings.screenshots_url_prefix,
        )

    def pull_request_body(self, site: SiteConfig, date: str, verdict: ComparisonVerdict,
                          changes: list[ModuleChangeRecord]) -> str:
        """PR description: status and module diffs, without the screenshot tables."""
        return self._render(site, date, verdict, changes, pr_url=None)

    def write_site_content(
        self,
        site: SiteConfig,
        date: str,
        verdict: ComparisonVerdict,
        changes: list[ModuleChangeRecord],
        pr_url: Optional[str] = None,
        output_dir: Path | None = None,
    ) -> list[Path]:
        """Write the site's section index and the dated report page. Returns written paths."""
        content_dir = (output_dir or Path(self.settings.content_dir)) / site.name
        content_dir.mkdir(parents=True, exist_ok=True)

        index_path = content_dir / "_index.md"
        index_path.write_text(f"---\ntitle: {site.title}\n---\n", encoding="utf-8")

        d = date_type.fromisoformat(date)
        utc_now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        front_matter = (
            "---\n"
            f"title: Module update ({d.month:02d}/{d.day:02d}/{d.year})\n"
            f"date: {utc_now}\n"
            f"status: {verdict.status.value}\n"
            "---\n"
        )
        report_path = content_dir / f"{date}.md"
        report_path.write_text(
            front_matter + self._render(site, date, verdict, changes, pr_url),
            encoding="utf-8",
        )
        logger.info("Content created: %s", report_path)
        return [index_path, report_path]
