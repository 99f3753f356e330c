"""Module update stage: clone, upgrade Hugo modules, install dependencies, build."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable

from sitekeeper.errors import BuildError, CommandError
from sitekeeper.maintenance import git
from sitekeeper.models.config import MaintenanceSettings, SiteConfig
from sitekeeper.models.pipeline import ModuleUpdate, StageOutcome
from sitekeeper.utils import shell
from sitekeeper.utils.retry import retry_async

logger = logging.getLogger(__name__)

_TRANSIENT_MARKERS = ("500", "registry", "ENOTFOUND", "ETIMEDOUT", "ECONNRESET")


def is_registry_error(exc: BaseException) -> bool:
    """Registry and network failures are retried; anything else fails fast."""
    text = str(exc)
    if isinstance(exc, CommandError):
        text += "\n" + exc.output
    return any(marker in text for marker in _TRANSIENT_MARKERS)


async def install_dependencies(
    workdir: Path,
    max_attempts: int = 3,
    delay_seconds: float = 5.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> bool:
    """Run ``yarn install`` with retries. Returns False if it never succeeded."""
    async def install(attempt: int) -> None:
        logger.info("Installing Node.js dependencies (attempt %d/%d)...", attempt, max_attempts)
        shell.run(["yarn", "install"], cwd=workdir)

    try:
        result = await retry_async(
            install,
            max_attempts=max_attempts,
            delay_seconds=delay_seconds,
            retry_on=is_registry_error,
            sleep=sleep,
            label="yarn install",
        )
    except CommandError as e:
        logger.warning("Dependency install failed: %s", e)
        return False
    if result.exhausted:
        return False
    logger.info("Dependencies installed")
    return True


async def update_modules(
    site: SiteConfig,
    workdir: Path,
    settings: MaintenanceSettings,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> StageOutcome:
    """Upgrade the site's modules in a fresh checkout at ``workdir`` and rebuild it.

    Returns success with a ModuleUpdate, skip when nothing meaningful changed,
    or fail when the checkout, update or build breaks.
    """
    try:
        logger.info("Cloning %s (%s) into %s...", site.repository.repo, site.repository.branch, workdir)
        git.clone(git.repo_url(site.repository.repo, settings.github_token),
                  site.repository.branch, workdir)

        if not (workdir / "go.mod").exists():
            return StageOutcome.fail("No go.mod file found: not a Hugo project with modules")

        logger.info("Updating Hugo modules...")
        shell.run(["hugo", "mod", "get", "-u"], cwd=workdir)
        shell.run(["hugo", "mod", "tidy"], cwd=workdir)

        status = git.status_porcelain(workdir)
        logger.debug("Git status:\n%s", status)
        if not status:
            return StageOutcome.skip("No changes to commit")

        files = git.changed_files(status)
        if files == [git.LOCK_FILE]:
            return StageOutcome.skip(f"Only {git.LOCK_FILE} changed")
        logger.info("Meaningful changes: %s", ", ".join(f for f in files if f != git.LOCK_FILE))

        changes = git.module_changes(workdir)
        if not changes:
            return StageOutcome.skip("No changes detected in Hugo modules")
        for record in changes:
            logger.info("Modified %s (%d diff lines)", record.file, len(record.changes))

        if (workdir / "package.json").exists():
            installed = await install_dependencies(
                workdir, settings.install_max_attempts,
                settings.install_retry_delay_seconds, sleep=sleep,
            )
            if not installed:
                logger.warning("Continuing with build; dependencies may be cached or not needed")

        logger.info("Building static site...")
        shell.run(["hugo", "--gc", "--minify"], cwd=workdir)
        public_dir = workdir / "public"
        if not public_dir.exists():
            raise BuildError("Build failed: public directory not created")

        logger.info("Site built in %s", public_dir)
        return StageOutcome.success(ModuleUpdate(
            workdir=str(workdir), public_dir=str(public_dir), changes=changes,
        ))
    except (CommandError, BuildError) as e:
        logger.error("Failed to update modules for %s: %s", site.name, e)
        return StageOutcome.fail(str(e))
