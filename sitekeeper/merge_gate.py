"""Merge gate: decides whether an update pull request may be merged unattended.

A failing visual verdict always blocks the merge. Otherwise the pull request's
merge readiness is polled on a bounded schedule:

    checking -> clean | dirty | blocked | pending
    dirty -> failed (terminal)
    blocked | pending -> checking (after the poll interval, until the budget runs out)
    clean -> merging -> merged | error
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Union

from pydantic import ValidationError

from sitekeeper.errors import HostingError
from sitekeeper.hosting.github import HostingPlatform, PullRequest
from sitekeeper.models.config import SiteConfig
from sitekeeper.models.merge import MergeOutcome, MergeReadiness, MergeResult
from sitekeeper.models.verdict import ComparisonVerdict, VerdictStatus
from sitekeeper.utils.retry import retry_async

logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    """Network errors and 5xx responses are worth another poll; 4xx are not."""
    if isinstance(exc, HostingError):
        return exc.status is None or exc.status >= 500
    return False


class MergeGate:
    def __init__(
        self,
        platform: HostingPlatform,
        max_attempts: int = 30,
        poll_interval: float = 2.0,
        merge_method: str = "squash",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.platform = platform
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval
        self.merge_method = merge_method
        self.sleep = sleep

    async def attempt_auto_merge(
        self,
        site: SiteConfig,
        pull_request: Union[int, str],
        verdict: ComparisonVerdict,
    ) -> MergeResult:
        """Merge ``pull_request`` (a PR number or head branch name) if it is safe to."""
        if verdict.status == VerdictStatus.FAIL:
            logger.warning("Visual regression on %s (%s): auto-merge skipped",
                           site.name, ", ".join(verdict.diff_pages))
            return MergeResult(
                outcome=MergeOutcome.SKIPPED_DUE_TO_FAILURE,
                reason="Visual comparison failed",
            )

        owner, repo = site.repository.owner, site.repository.name
        try:
            number = await self._resolve_number(site, pull_request)
            if number is None:
                logger.error("No open PR found for branch %s", pull_request)
                return MergeResult(outcome=MergeOutcome.ERROR, reason="No open PR found",
                                   category="not_found")
            return await self._merge_when_ready(owner, repo, number)
        except HostingError as e:
            logger.error("Failed to merge PR for %s: %s", site.name, e)
            return MergeResult(outcome=MergeOutcome.ERROR, reason=str(e), category=e.category)
        except ValidationError as e:
            logger.error("Unexpected pull request payload for %s: %s", site.name, e)
            return MergeResult(outcome=MergeOutcome.ERROR,
                               reason=f"Malformed pull request data: {e.error_count()} error(s)",
                               category="unknown")

    async def _resolve_number(self, site: SiteConfig, pull_request: Union[int, str]) -> int | None:
        if isinstance(pull_request, int):
            return pull_request
        prs = await self.platform.list_pull_requests(
            site.repository.owner, site.repository.name,
            head=pull_request, base=site.repository.branch,
        )
        if not prs:
            return None
        logger.info("Found PR #%d for branch %s", prs[0].number, pull_request)
        return prs[0].number

    async def _merge_when_ready(self, owner: str, repo: str, number: int) -> MergeResult:
        async def check(attempt: int) -> PullRequest:
            pr = await self.platform.get_pull_request(owner, repo, number)
            logger.info("Check PR #%d status (attempt %d/%d): mergeable=%s, state=%s",
                        number, attempt, self.max_attempts, pr.mergeable, pr.mergeable_state)
            return pr

        def settled(pr: PullRequest) -> bool:
            if pr.merged:
                return True
            readiness = MergeReadiness.classify(pr.mergeable_state)
            if readiness == MergeReadiness.BLOCKED:
                logger.info("PR #%d checks pending or failing, waiting...", number)
            elif readiness == MergeReadiness.PENDING:
                logger.info("PR #%d state is %s, waiting for checks...", number, pr.mergeable_state)
            return readiness in (MergeReadiness.CLEAN, MergeReadiness.DIRTY)

        poll = await retry_async(
            check,
            max_attempts=self.max_attempts,
            delay_seconds=self.poll_interval,
            should_stop=settled,
            retry_on=_is_transient,
            sleep=self.sleep,
            label=f"PR #{number} readiness check",
        )

        if poll.exhausted:
            budget = self.max_attempts * self.poll_interval
            logger.error("PR #%d checks did not pass after %.0fs", number, budget)
            return MergeResult(
                outcome=MergeOutcome.ERROR,
                reason=f"timeout: checks did not pass within {self.max_attempts} attempts",
                category="timeout",
                pr_number=number,
                attempts=poll.attempts,
            )

        pr = poll.value
        if pr.merged:
            logger.info("PR #%d is already merged", number)
            return MergeResult(outcome=MergeOutcome.ALREADY_MERGED, pr_number=number,
                               merge_sha=pr.merge_commit_sha, attempts=poll.attempts)

        if MergeReadiness.classify(pr.mergeable_state) == MergeReadiness.DIRTY:
            logger.error("PR #%d has conflicts, cannot merge", number)
            return MergeResult(outcome=MergeOutcome.BLOCKED, reason="Merge conflicts",
                               category="not_mergeable", pr_number=number, attempts=poll.attempts)

        if pr.mergeable is False:
            logger.error("PR #%d is not mergeable", number)
            return MergeResult(outcome=MergeOutcome.BLOCKED, reason="PR not mergeable",
                               category="not_mergeable", pr_number=number, attempts=poll.attempts)

        return await self._merge(owner, repo, pr, poll.attempts)

    async def _merge(self, owner: str, repo: str, pr: PullRequest, attempts: int) -> MergeResult:
        branch = pr.head_ref or f"#{pr.number}"
        merge = await self.platform.merge_pull_request(
            owner, repo, pr.number,
            merge_method=self.merge_method,
            commit_title=f"chore: merge {branch} updates",
            commit_message=f"Automated merge of Hugo modules updates from {branch}",
        )
        logger.info("Merged PR #%d with method %s", pr.number, self.merge_method)

        branch_deleted = None
        if pr.head_ref:
            branch_deleted = await self._delete_branch(owner, repo, pr.head_ref)

        return MergeResult(
            outcome=MergeOutcome.MERGED,
            pr_number=pr.number,
            merge_sha=(merge or {}).get("sha"),
            attempts=attempts,
            branch_deleted=branch_deleted,
        )

    async def _delete_branch(self, owner: str, repo: str, branch: str) -> bool:
        try:
            await self.platform.delete_ref(owner, repo, branch)
            logger.info("Deleted branch %s", branch)
            return True
        except HostingError as e:
            logger.warning("Failed to delete branch %s: %s", branch, e)
            return False
