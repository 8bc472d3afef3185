# AGPL-3.0 License

"""
external_status: gate on check runs produced by other systems (CI, linters, ...).

States of a rule on a commit:

* unresolved: some required checks are queued, running or not reported yet
* resolved-success: every required check completed with ``success``
* resolved-failure: at least one required check completed otherwise
* timed-out: still unresolved after ``timeout_minutes``

Unresolved results are not terminal: the orchestrator records a
PendingEvaluation and a later ``check_run.completed`` event (reactive path)
or any re-evaluation of the PR (fallback path) calls ``resolve`` again.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Literal, Optional

from branch_guard.checks.base_check import BaseCheck
from branch_guard.checks.check_context import CheckContext
from branch_guard.checks.check_result import WAITING_TITLE_PREFIX, CheckResult
from branch_guard.git_providers.github_client import GitHubClient
from branch_guard.state.pending_store import PendingEvaluation, PendingEvaluationStore, pending_key


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExternalCheckStatus:
    name: str
    state: Literal["succeeded", "failed", "pending"]
    conclusion: Optional[str] = None


class ExternalStatusCheck(BaseCheck):
    """Waits for a set of named check runs on the head commit to succeed."""

    check_type = "external_status"

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        super().__init__()
        self._clock = clock

    async def run(self, context: CheckContext) -> CheckResult:
        rule = context.rule
        store = context.pending_store
        key = pending_key(context.owner, context.repo, context.pr.head_sha, rule.name)
        existing = await store.get(key) if store is not None else None

        result = await self.resolve(
            context.client,
            context.owner,
            context.repo,
            context.pr.head_sha,
            rule.config.required_checks,
            rule.config.timeout_minutes,
        )

        # settled checks keep their result even past the deadline
        if result.is_waiting and existing is not None and existing.is_expired(self._clock()):
            result = self.timeout_result(existing)

        if store is not None and not result.is_waiting:
            await store.delete(key)
        return result

    async def resolve_pending(
        self,
        client: GitHubClient,
        evaluation: PendingEvaluation,
        store: PendingEvaluationStore,
    ) -> Optional[CheckResult]:
        """
        Re-check a stored pending evaluation.

        An expired record times out before the remote checks are read.

        Returns:
            The terminal result (the record is deleted), or None while still waiting
        """
        if evaluation.is_expired(self._clock()):
            result = self.timeout_result(evaluation)
        else:
            result = await self.resolve(
                client,
                evaluation.owner,
                evaluation.repo,
                evaluation.head_sha,
                evaluation.required_checks,
                evaluation.timeout_minutes,
            )
        if result.is_waiting:
            return None

        await store.delete(evaluation.key)
        return result

    async def resolve(
        self,
        client: GitHubClient,
        owner: str,
        repo: str,
        head_sha: str,
        required_checks: list[str],
        timeout_minutes: float,
    ) -> CheckResult:
        """Classify the current state of the required checks."""
        statuses = await self.get_required_check_statuses(client, owner, repo, head_sha, required_checks)
        return self.classify(statuses, timeout_minutes)

    def timeout_result(self, pending: PendingEvaluation) -> CheckResult:
        self.logger.info(f"Pending evaluation {pending.key} timed out")
        return CheckResult(
            conclusion="failure",
            title="Timed out waiting for required checks",
            summary=(
                f"Required checks did not complete within {pending.timeout_minutes:g} minutes: "
                f"{', '.join(pending.required_checks)}"
            ),
        )

    @staticmethod
    def classify(statuses: list[ExternalCheckStatus], timeout_minutes: float) -> CheckResult:
        failed = [s.name for s in statuses if s.state == "failed"]
        waiting = [s.name for s in statuses if s.state == "pending"]

        if failed:
            return CheckResult(
                conclusion="failure",
                title=f'Required check "{failed[0]}" failed',
                summary=f"The following required checks did not pass: {', '.join(failed)}",
            )

        if not waiting:
            return CheckResult(
                conclusion="success",
                title="All required checks passed",
                summary=f"Required checks: {', '.join(s.name for s in statuses)}",
            )

        return CheckResult(
            conclusion="failure",
            title=f"{WAITING_TITLE_PREFIX} {', '.join(waiting)}",
            summary=(
                f"Required checks are still pending: {', '.join(waiting)}.\n\n"
                f"This check will be updated automatically when the required checks complete "
                f"(timeout: {timeout_minutes:g} minutes)."
            ),
        )

    @staticmethod
    async def get_required_check_statuses(
        client: GitHubClient,
        owner: str,
        repo: str,
        head_sha: str,
        required_checks: list[str],
    ) -> list[ExternalCheckStatus]:
        runs = await client.list_check_runs(owner, repo, head_sha)

        # The API lists the most recent run of a name first
        latest_by_name: dict[str, dict] = {}
        for run in runs:
            latest_by_name.setdefault(run.get("name"), run)

        statuses = []
        for name in required_checks:
            run = latest_by_name.get(name)
            if run is None or run.get("status") != "completed":
                statuses.append(ExternalCheckStatus(name=name, state="pending"))
            elif run.get("conclusion") == "success":
                statuses.append(ExternalCheckStatus(name=name, state="succeeded", conclusion="success"))
            else:
                statuses.append(ExternalCheckStatus(name=name, state="failed", conclusion=run.get("conclusion")))
        return statuses
