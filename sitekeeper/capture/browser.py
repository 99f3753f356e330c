"""Browser utilities: launch Chromium and build deterministic capture contexts."""

from __future__ import annotations

from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

# Freeze anything that moves so two renders of the same page line up pixel for pixel.
FREEZE_CSS = """
[data-anim], * {
  opacity: 1 !important;
  transform: none !important;
  transition: none !important;
  animation: none !important;
}
a, button, [role="button"] { pointer-events: none !important; }
"""

# Force lazy images to load, scroll to the bottom in steps, then return to the top.
_LOAD_LAZY_CONTENT_JS = """
async (step) => {
    document.querySelectorAll('img[loading="lazy"]').forEach(img => {
        img.setAttribute('loading', 'eager');
    });
    await new Promise(resolve => {
        const timer = setInterval(() => {
            window.scrollBy(0, step);
            if (window.scrollY + window.innerHeight >= document.body.scrollHeight) {
                clearInterval(timer);
                window.scrollTo(0, 0);
                resolve();
            }
        }, 100);
    });
}
"""


async def launch_browser(playwright: Playwright, headless: bool = True) -> Browser:
    """Launch headless Chromium."""
    return await playwright.chromium.launch(
        headless=headless,
        args=["--disable-blink-features=AutomationControlled", "--hide-scrollbars"],
    )


async def create_capture_context(
    browser: Browser,
    viewport: dict,
    user_agent: Optional[str] = None,
) -> BrowserContext:
    """Create an isolated context with a fixed locale, timezone and motion settings."""
    return await browser.new_context(
        viewport=viewport,
        user_agent=user_agent or DEFAULT_USER_AGENT,
        locale="en-US",
        timezone_id="America/New_York",
        reduced_motion="reduce",
        extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
    )


async def freeze_page(page: Page) -> None:
    """Inject the style sheet that disables animations, transitions and hover."""
    await page.add_style_tag(content=FREEZE_CSS)


async def load_lazy_content(page: Page, scroll_step_px: int = 100) -> None:
    await page.evaluate(_LOAD_LAZY_CONTENT_JS, scroll_step_px)
