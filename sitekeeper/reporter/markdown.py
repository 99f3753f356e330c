"""Markdown report generator: renders a maintenance run for the PR body and the site log."""

from __future__ import annotations

from datetime import date as date_type
from typing import Optional

from sitekeeper.comparison.store import page_file_name
from sitekeeper.models.pipeline import ModuleChangeRecord
from sitekeeper.models.verdict import ComparisonVerdict, VerdictStatus


def screenshot_url(prefix: str, site_name: str, date: str, kind: str, page: str,
                   resolution: str) -> str:
    """Public URL of a capture (kind = before/after) or diff image (kind = compare)."""
    suffix = "_diff" if kind == "compare" else ""
    return f"{prefix}/{site_name}/{date}/{kind}/{page_file_name(page)}_{resolution}{suffix}.png"


def format_long_date(date: str) -> str:
    d = date_type.fromisoformat(date)
    return f"{d:%A}, {d:%B} {d.day}, {d.year}"


def _date_section(date: str) -> str:
    return f"## Date\n{format_long_date(date)}\n"


def _status_section(verdict: ComparisonVerdict, site_name: str, date: str, prefix: str) -> str:
    section = "## Status\n"
    if verdict.status != VerdictStatus.FAIL:
        return section + "✅ Success\n"

    section += "❌ Failed\n"
    if verdict.diff_pages:
        section += "## Problematic pages\n"
        for page in verdict.diff_pages:
            section += f"- {page}\n\n"
            for resolution, cell in verdict.details.get(page, {}).items():
                if not cell.has_problem:
                    continue
                url = screenshot_url(prefix, site_name, date, "compare", page, resolution)
                section += f"![Diff {resolution} ({cell.diff_percent:.2f}%)]({url})\n"
    return section


def _modules_section(changes: list[ModuleChangeRecord]) -> str:
    section = "## Updated modules\n"
    if not changes:
        return section + "No modules updated.\n"
    for record in changes:
        section += f"### {record.file}\n\n"
        section += "```diff\n" + "\n".join(record.changes) + "\n```\n\n"
    return section


def _screenshot_row(site_name: str, date: str, page: str, resolution: str, prefix: str) -> str:
    before = screenshot_url(prefix, site_name, date, "before", page, resolution)
    after = screenshot_url(prefix, site_name, date, "after", page, resolution)
    return (
        f"\n### {resolution.capitalize()}\n\n"
        "| Before | After |\n"
        "|--------|-------|\n"
        f'| ![Before]({before} "Before - {resolution}") '
        f'| ![After]({after} "After - {resolution}") |\n'
    )


def _screenshots_section(pages: list[str], resolutions: list[str], site_name: str,
                         date: str, prefix: str) -> str:
    section = ""
    for page in pages:
        section += f"\n## Page {page or '/'}\n"
        for resolution in resolutions:
            section += _screenshot_row(site_name, date, page, resolution, prefix)
    return section


def generate_full_report(
    *,
    site_name: str,
    date: str,
    verdict: ComparisonVerdict,
    changes: list[ModuleChangeRecord],
    pages: list[str],
    resolutions: list[str],
    pr_url: Optional[str] = None,
    url_prefix: str = "/images/screenshots",
) -> str:
    """Render the full report. Screenshot tables are only included once a PR exists."""
    content = (
        f"\n{_date_section(date)}\n"
        f"{_status_section(verdict, site_name, date, url_prefix)}\n"
        f"{_modules_section(changes)}\n"
    )
    if pr_url:
        content += f"## Pull request\n{pr_url}\n"
        content += _screenshots_section(pages, resolutions, site_name, date, url_prefix)
    return content
