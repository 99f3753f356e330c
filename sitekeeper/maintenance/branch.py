"""Branch stage: commit the module update and push it as a new branch."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from sitekeeper.errors import CommandError, HostingError
from sitekeeper.hosting.github import HostingPlatform
from sitekeeper.maintenance import git
from sitekeeper.models.config import MaintenanceSettings, SiteConfig
from sitekeeper.models.pipeline import StageOutcome
from sitekeeper.utils import shell

logger = logging.getLogger(__name__)


def branch_name_for(date: str) -> str:
    return f"mods-update-{date}-{int(time.time() * 1000)}"


async def create_branch(
    site: SiteConfig,
    workdir: Path,
    date: str,
    platform: HostingPlatform,
    settings: MaintenanceSettings,
) -> StageOutcome:
    """Commit the checkout's changes on a fresh branch and push it. Value: branch name."""
    branch = branch_name_for(date)
    owner, repo = site.repository.owner, site.repository.name
    try:
        logger.info("Creating branch %s with modifications...", branch)
        shell.run(["git", "checkout", "-b", branch], cwd=workdir)
        shell.run(["git", "add", "-A"], cwd=workdir)
        git.configure_identity(workdir, settings.git_user_email, settings.git_user_name)
        shell.run(["git", "commit", "-m", f"chore: update Hugo modules ({date})"], cwd=workdir)
        sha = shell.run(["git", "rev-parse", "HEAD"], cwd=workdir).strip()
        logger.debug("Commit SHA %s", sha)

        try:
            await platform.create_ref(owner, repo, branch, sha)
            logger.info("Branch %s created on GitHub", branch)
        except HostingError as e:
            if e.category != "already_exists":
                raise
            logger.info("Branch %s already exists on GitHub", branch)

        shell.run(["git", "push", "--force", "origin", branch], cwd=workdir)
        logger.info("Branch %s pushed", branch)
        return StageOutcome.success(branch)
    except CommandError as e:
        logger.error("Failed to create branch: %s", e)
        return StageOutcome.fail(str(e))
    except HostingError as e:
        logger.error("Failed to create branch: %s", e)
        if e.category == "permission_denied":
            logger.error("Permission denied. Check your GitHub token permissions.")
        return StageOutcome.fail(f"{e.category}: {e}")
