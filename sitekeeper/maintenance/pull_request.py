"""Pull-request stage: open the update PR against the site's base branch."""

from __future__ import annotations

import logging

from sitekeeper.errors import HostingError
from sitekeeper.hosting.github import HostingPlatform
from sitekeeper.models.config import SiteConfig
from sitekeeper.models.pipeline import StageOutcome

logger = logging.getLogger(__name__)


async def create_pull_request(
    site: SiteConfig,
    date: str,
    branch: str,
    body: str,
    platform: HostingPlatform,
) -> StageOutcome:
    """Open the PR for ``branch``. Value: the created PullRequest."""
    owner, repo = site.repository.owner, site.repository.name
    try:
        logger.info("Checking that branch %s exists on remote...", branch)
        try:
            await platform.get_ref(owner, repo, branch)
        except HostingError as e:
            if e.category == "not_found":
                logger.error("Branch %s does not exist on remote. Did the push succeed?", branch)
                return StageOutcome.fail(f"Branch {branch} not found on remote")
            raise

        pr = await platform.create_pull_request(
            owner, repo,
            title=f"chore: update Hugo modules ({date})",
            head=branch,
            base=site.repository.branch,
            body=body,
        )
        logger.info("PR #%d created: %s", pr.number, pr.html_url)
        return StageOutcome.success(pr)
    except HostingError as e:
        logger.error("Failed to create pull request: %s", e)
        return StageOutcome.fail(f"{e.category}: {e}")
