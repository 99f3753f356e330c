"""Tests for Markdown report rendering and content output."""

from pathlib import Path

import pytest

from sitekeeper.models.pipeline import ModuleChangeRecord
from sitekeeper.reporter.markdown import format_long_date, generate_full_report, screenshot_url
from sitekeeper.reporter.reporter import Reporter

CHANGES = [ModuleChangeRecord(file="go.mod", changes=["@@ -5 +5 @@", "-theme v1.2.0", "+theme v1.3.0"])]


def render(verdict, **kwargs):
    params = dict(
        site_name="example-site", date="2025-03-03", verdict=verdict, changes=CHANGES,
        pages=["/", "/about/"], resolutions=["mobile", "laptop"],
    )
    params.update(kwargs)
    return generate_full_report(**params)


class TestHelpers:
    """Tests for URL and date helpers."""

    def test_long_date(self):
        assert format_long_date("2025-03-03") == "Monday, March 3, 2025"

    def test_capture_url(self):
        assert screenshot_url("/images/screenshots", "s", "2025-03-03", "before", "/", "mobile") == \
            "/images/screenshots/s/2025-03-03/before/home_mobile.png"

    def test_diff_url(self):
        assert screenshot_url("/img", "s", "2025-03-03", "compare", "/about/", "laptop") == \
            "/img/s/2025-03-03/compare/about_laptop_diff.png"


class TestGenerateFullReport:
    """Tests for generate_full_report()."""

    def test_success_report(self, ok_verdict):
        report = render(ok_verdict)

        assert "## Date\nMonday, March 3, 2025" in report
        assert "## Status\n✅ Success" in report
        assert "## Problematic pages" not in report
        assert "### go.mod\n\n```diff\n@@ -5 +5 @@\n-theme v1.2.0\n+theme v1.3.0\n```" in report

    def test_failure_lists_diff_images(self, fail_verdict):
        report = render(fail_verdict)

        assert "❌ Failed" in report
        assert "## Problematic pages\n- /about/" in report
        assert "![Diff mobile (12.50%)](/images/screenshots/example-site/2025-03-03/compare/about_mobile_diff.png)" in report
        assert "home_mobile_diff.png" not in report

    def test_no_module_changes(self, ok_verdict):
        assert "No modules updated." in render(ok_verdict, changes=[])

    def test_screenshots_only_with_pr(self, ok_verdict):
        without_pr = render(ok_verdict)
        with_pr = render(ok_verdict, pr_url="https://github.com/acme/example-site/pull/7")

        assert "## Pull request" not in without_pr
        assert "| Before | After |" not in without_pr
        assert "## Pull request\nhttps://github.com/acme/example-site/pull/7" in with_pr
        assert "## Page /about/" in with_pr
        assert "### Laptop" in with_pr
        assert with_pr.count("| Before | After |") == 4
        assert "/images/screenshots/example-site/2025-03-03/after/about_laptop.png" in with_pr


class TestReporter:
    """Tests for Reporter content output."""

    def test_pull_request_body_has_no_screenshots(self, settings, site_config, ok_verdict):
        body = Reporter(settings).pull_request_body(site_config, "2025-03-03", ok_verdict, CHANGES)
        assert "## Updated modules" in body
        assert "| Before | After |" not in body

    def test_write_site_content(self, settings, site_config, fail_verdict, tmp_path: Path):
        paths = Reporter(settings).write_site_content(
            site_config, "2025-03-03", fail_verdict, CHANGES,
            pr_url="https://github.com/acme/example-site/pull/7",
        )

        index_path, report_path = paths
        assert index_path == Path(settings.content_dir) / "example-site" / "_index.md"
        assert index_path.read_text() == "---\ntitle: Example Site\n---\n"

        report = report_path.read_text(encoding="utf-8")
        assert report_path.name == "2025-03-03.md"
        assert report.startswith("---\ntitle: Module update (03/03/2025)\ndate: ")
        assert "status: Fail\n---\n" in report
        assert "## Pull request" in report

    def test_custom_output_dir(self, settings, site_config, ok_verdict, tmp_path: Path):
        paths = Reporter(settings).write_site_content(
            site_config, "2025-03-03", ok_verdict, [], output_dir=tmp_path / "out",
        )
        assert paths[1] == tmp_path / "out" / "example-site" / "2025-03-03.md"
        assert "status: OK" in paths[1].read_text(encoding="utf-8")
