# AGPL-3.0 License

"""
branch_age: limit how far a branch may lag behind its base.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from branch_guard.checks.base_check import BaseCheck
from branch_guard.checks.check_context import CheckContext
from branch_guard.checks.check_result import CheckResult

SECONDS_PER_DAY = 86400


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class BranchAgeCheck(BaseCheck):
    """
    Fails when the merge base of the PR is older than ``max_age_days``.

    The age is measured in whole days from the merge-base commit's
    committer date (author date when the committer date is absent).
    """

    check_type = "branch_age"

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        super().__init__()
        self._clock = clock

    async def run(self, context: CheckContext) -> CheckResult:
        max_age_days = context.rule.config.max_age_days
        pr = context.pr

        comparison = await context.client.compare_commits(context.owner, context.repo, pr.base_sha, pr.head_sha)
        merge_base_time = self._merge_base_time(comparison)

        if merge_base_time is None:
            return CheckResult(
                conclusion="failure",
                title="Unable to determine branch age",
                summary="Could not read the merge base commit date from the GitHub Compare API.",
            )

        elapsed = (self._clock() - merge_base_time).total_seconds()
        age_days = int(elapsed // SECONDS_PER_DAY)

        if age_days <= max_age_days:
            return CheckResult(
                conclusion="success",
                title=f"Branch is {age_days} day(s) old",
                summary=f"The branch diverged {age_days} day(s) ago, within the {max_age_days}-day limit.",
            )

        return CheckResult(
            conclusion="failure",
            title=f"Branch is {age_days} day(s) old (max: {max_age_days})",
            summary=(
                f"The branch diverged {age_days} day(s) ago, exceeding the {max_age_days}-day limit. "
                f"Consider rebasing onto the latest `{pr.base_branch}`."
            ),
        )

    @staticmethod
    def _merge_base_time(comparison: Optional[dict]) -> Optional[datetime]:
        commit = ((comparison or {}).get("merge_base_commit") or {}).get("commit") or {}
        committer = commit.get("committer") or {}
        author = commit.get("author") or {}
        return _parse_timestamp(committer.get("date")) or _parse_timestamp(author.get("date"))
