"""Pytest configuration and shared fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from playwright.async_api import Browser, BrowserContext, Page

from sitekeeper.comparison.image_diff import Bitmap
from sitekeeper.comparison.store import ScreenshotStore, Variant
from sitekeeper.hosting.github import PullRequest
from sitekeeper.models.config import MaintenanceSettings, SiteConfig
from sitekeeper.models.verdict import ComparisonVerdict, PageDeviceResult, VerdictStatus

BLACK = (0, 0, 0, 255)
WHITE = (255, 255, 255, 255)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> MaintenanceSettings:
    """Settings whose storage roots live under tmp_path."""
    return MaintenanceSettings(
        data_dir=str(tmp_path / "datas"),
        screenshots_dir=str(tmp_path / "screenshots"),
        content_dir=str(tmp_path / "content"),
        github_token="test-token",
        git_user_email="bot@example.com",
        merge_poll_interval_seconds=0.0,
        install_retry_delay_seconds=0.0,
        publish_results=False,
    )


@pytest.fixture
def site_config() -> SiteConfig:
    """A two-page site captured at two resolutions."""
    return SiteConfig(
        name="example-site",
        title="Example Site",
        repository={"repo": "acme/example-site", "branch": "main"},
        website={"url": "https://example.com/", "pages": ["/", "/about/"]},
        screenshots=["mobile", "laptop"],
    )


@pytest.fixture
def site_yaml() -> str:
    return (
        "name: example-site\n"
        "title: Example Site\n"
        "repository:\n"
        "  repo: acme/example-site\n"
        "website:\n"
        "  url: https://example.com\n"
        "  pages:\n"
        "    - /\n"
        "    - /about/\n"
        "screenshots:\n"
        "  - mobile\n"
    )


# ============================================================================
# Bitmap / Store Fixtures
# ============================================================================


@pytest.fixture
def black_bitmap() -> Bitmap:
    return Bitmap.filled(100, 100, BLACK)


@pytest.fixture
def white_bitmap() -> Bitmap:
    return Bitmap.filled(100, 100, WHITE)


@pytest.fixture
def store(tmp_path: Path) -> ScreenshotStore:
    return ScreenshotStore(tmp_path / "screenshots", "example-site", "2025-03-03")


@pytest.fixture
def write_capture(store: ScreenshotStore):
    """Write a bitmap as a capture for (variant, page, resolution)."""

    def _write(variant: Variant, page: str, resolution: str, bitmap: Bitmap) -> Path:
        path = store.screenshot_path(variant, page, resolution)
        bitmap.save(path)
        return path

    return _write


# ============================================================================
# Verdict Fixtures
# ============================================================================


@pytest.fixture
def ok_verdict() -> ComparisonVerdict:
    return ComparisonVerdict(
        status=VerdictStatus.OK,
        timestamp="2025-03-03T10:00:00Z",
        details={"/": {"mobile": PageDeviceResult(
            page="/", resolution="mobile", num_diff_pixels=0, diff_percent=0.0,
        )}},
    )


@pytest.fixture
def fail_verdict() -> ComparisonVerdict:
    return ComparisonVerdict(
        status=VerdictStatus.FAIL,
        diff_pages=("/about/",),
        timestamp="2025-03-03T10:00:00Z",
        details={
            "/": {"mobile": PageDeviceResult(
                page="/", resolution="mobile", num_diff_pixels=0, diff_percent=0.0,
            )},
            "/about/": {"mobile": PageDeviceResult(
                page="/about/", resolution="mobile", num_diff_pixels=4000,
                diff_percent=12.5, has_problem=True,
            )},
        },
    )


# ============================================================================
# Mock Fixtures
# ============================================================================


def make_pull_request(**overrides) -> PullRequest:
    data = {
        "number": 7,
        "html_url": "https://github.com/acme/example-site/pull/7",
        "state": "open",
        "merged": False,
        "mergeable": True,
        "mergeable_state": "clean",
        "head": {"ref": "mods-update-2025-03-03-1"},
    }
    data.update(overrides)
    return PullRequest.model_validate(data)


@pytest.fixture
def mock_platform() -> AsyncMock:
    """A hosting platform whose PR is immediately clean and mergeable."""
    platform = AsyncMock()
    platform.get_pull_request.return_value = make_pull_request()
    platform.merge_pull_request.return_value = {"sha": "abc123", "merged": True}
    platform.delete_ref.return_value = None
    platform.get_ref.return_value = {"ref": "refs/heads/mods-update-2025-03-03-1"}
    platform.create_ref.return_value = {"ref": "refs/heads/mods-update-2025-03-03-1"}
    platform.create_pull_request.return_value = make_pull_request()
    platform.list_pull_requests.return_value = [make_pull_request()]
    return platform


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page."""
    page = AsyncMock(spec=Page)
    page.goto = AsyncMock()
    page.add_style_tag = AsyncMock()
    page.evaluate = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.screenshot = AsyncMock()
    return page


@pytest.fixture
def mock_context(mock_page: AsyncMock) -> AsyncMock:
    """Create a mock Playwright browser context."""
    context = AsyncMock(spec=BrowserContext)
    context.new_page = AsyncMock(return_value=mock_page)
    return context


@pytest.fixture
def mock_browser(mock_context: AsyncMock) -> AsyncMock:
    """Create a mock Playwright browser."""
    browser = AsyncMock(spec=Browser)
    browser.new_context = AsyncMock(return_value=mock_context)
    return browser


@pytest.fixture
def make_pr():
    """Factory for PullRequest payloads with overrides."""
    return make_pull_request


# ============================================================================
# Shell Fixtures
# ============================================================================


class FakeShell:
    """Stands in for shell.run; responses are matched by command prefix.

    A response may be a string (stdout), an exception (raised), a callable
    ``(command, cwd) -> str``, or a list consumed one item per call.
    """

    def __init__(self):
        self.responses: dict = {}
        self.calls: list[tuple[list[str], object]] = []

    def __call__(self, command, cwd=None, timeout=900):
        self.calls.append((list(command), cwd))
        joined = " ".join(command)
        for prefix, response in self.responses.items():
            if not joined.startswith(prefix):
                continue
            if isinstance(response, list):
                response = response.pop(0) if len(response) > 1 else response[0]
            if isinstance(response, BaseException):
                raise response
            if callable(response):
                return response(command, cwd)
            return response
        return ""

    def commands(self) -> list[str]:
        return [" ".join(command) for command, _ in self.calls]


@pytest.fixture
def fake_shell(monkeypatch) -> FakeShell:
    fake = FakeShell()
    monkeypatch.setattr("sitekeeper.utils.shell.run", fake)
    return fake
