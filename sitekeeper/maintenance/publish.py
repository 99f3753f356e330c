"""Publish and cleanup steps that run after a site's report is written."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from sitekeeper.models.pipeline import StageOutcome
from sitekeeper.utils import shell

logger = logging.getLogger(__name__)


def commit_maintenance(site_name: str, date: str, repo_dir: Path | None = None) -> StageOutcome:
    """Commit and push screenshots and content to the maintenance repository.

    Raises CommandError if git fails, since a half-published run needs attention.
    """
    repo_dir = repo_dir or Path.cwd()
    logger.info("Committing screenshots and content for %s (%s)...", site_name, date)
    shell.run(["git", "add", "-A"], cwd=repo_dir)

    if not shell.run(["git", "status", "--porcelain"], cwd=repo_dir).strip():
        logger.info("No changes to commit for %s", site_name)
        return StageOutcome.skip("Nothing to commit")

    shell.run(
        ["git", "commit", "-m", f"chore: add screenshots and content for {site_name} ({date})"],
        cwd=repo_dir,
    )
    shell.run(["git", "push", "origin", "main"], cwd=repo_dir)
    logger.info("Screenshots and content pushed for %s (%s)", site_name, date)
    return StageOutcome.success()


def cleanup_temp_dir(tmp_path: Optional[Path], site_name: str = "") -> bool:
    """Remove a site's temporary checkout. True when the directory is gone afterwards."""
    if not tmp_path:
        logger.warning("No temp path provided for cleanup")
        return False
    tmp_path = Path(tmp_path)
    if not tmp_path.exists():
        logger.debug("Temp directory already removed: %s", tmp_path)
        return True
    try:
        shutil.rmtree(tmp_path)
    except OSError as e:
        logger.error("Failed to clean up temp directory %s: %s", tmp_path, e)
        return False
    logger.info("Cleaned up temp directory for %s: %s", site_name or "site", tmp_path)
    return True
