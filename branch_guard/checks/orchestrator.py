# AGPL-3.0 License

"""
Rule evaluation orchestration.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Literal, Optional

from branch_guard.algo.file_matcher import has_matching_files
from branch_guard.checks.check_context import CheckContext, PullRequestContext
from branch_guard.checks.check_result import CheckResult
from branch_guard.checks.registry import CheckRegistry, default_registry
from branch_guard.git_providers.check_runs import (
    check_run_name,
    create_check_run,
    find_check_run,
    update_check_run,
    upsert_completed_check_run,
)
from branch_guard.git_providers.github_client import GitHubClient
from branch_guard.log import get_logger
from branch_guard.rules.rule_models import FailureMessage, Rule, RuleConfig
from branch_guard.state.pending_store import (
    InMemoryPendingStore,
    PendingEvaluation,
    PendingEvaluationStore,
    pending_key,
)
from branch_guard.tools.pr_notifications import FailureSummary, NotificationManager

OutcomeStatus = Literal["skipped", "not_applicable", "pending", "completed", "error"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RuleOutcome:
    """
    What happened to one rule during an evaluation pass.

    Attributes:
        rule_name: Name of the rule
        status: skipped (no matching files, no check run), not_applicable
            (existing check run auto-passed), pending (waiting on external
            checks), completed, or error (internal error check posted)
        result: Final check result for pending/completed/error outcomes
        notify: Whether failures of this rule go into the PR comment
    """
    rule_name: str
    status: OutcomeStatus
    result: Optional[CheckResult] = None
    notify: bool = True

    @property
    def evaluated(self) -> bool:
        return self.status in ("pending", "completed", "error")

    @property
    def failed(self) -> bool:
        return self.status in ("completed", "error") and self.result is not None and not self.result.passed


def apply_failure_message(result: CheckResult, failure_message: Optional[FailureMessage]) -> CheckResult:
    """Replace title and/or summary of a failing result with the rule's overrides."""
    if result.passed or failure_message is None:
        return result
    if failure_message.title:
        result.title = failure_message.title
    if failure_message.summary:
        result.summary = failure_message.summary
    return result


def internal_error_result(error: BaseException) -> CheckResult:
    return CheckResult(
        conclusion="failure",
        title="Internal error",
        summary=f"An error occurred while evaluating this rule. Please re-run the check.\n\nError: {error}",
    )


class CheckOrchestrator:
    """
    Evaluates the rules of a configuration against one pull request.

    Rules run concurrently and independently: a rule that raises ends in a
    failing "Internal error" check run while its siblings complete normally.
    Every pass is idempotent, so any event may trigger it again.
    """

    def __init__(
        self,
        client: GitHubClient,
        registry: Optional[CheckRegistry] = None,
        pending_store: Optional[PendingEvaluationStore] = None,
        notifier: Optional[NotificationManager] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            client: GitHub client used for all check run and data calls
            registry: Check implementations by type (defaults to the built-in five)
            pending_store: Store for waiting external_status rules
            notifier: PR comment manager
            clock: Source of the current time for pending records
        """
        self.client = client
        self.registry = registry or default_registry()
        self.pending_store = pending_store if pending_store is not None else InMemoryPendingStore()
        self.notifier = notifier or NotificationManager(client)
        self._clock = clock
        self.logger = get_logger()

    async def evaluate(self, owner: str, repo: str, pr: PullRequestContext, config: RuleConfig) -> list[RuleOutcome]:
        """
        Evaluate every rule that targets the PR's base branch.

        Args:
            owner: Repository owner
            repo: Repository name
            pr: Pull request snapshot
            config: Validated rule configuration

        Returns:
            One outcome per applicable rule, in configuration order
        """
        rules = [rule for rule in config.rules if pr.base_branch in rule.on.branches]
        if not rules:
            self.logger.debug(f"No rules apply to base branch {pr.base_branch}")
            return []

        self.logger.info(f"Evaluating {len(rules)} rule(s) for {owner}/{repo}#{pr.number}")

        results_list = await asyncio.gather(
            *(self._evaluate_rule(owner, repo, pr, rule) for rule in rules),
            return_exceptions=True,
        )

        outcomes = []
        for rule, result in zip(rules, results_list):
            if isinstance(result, Exception):
                self.logger.opt(exception=result).error(f"Rule {rule.name} evaluation failed unexpectedly")
                outcomes.append(await self._post_error_check(owner, repo, pr, rule, result))
            else:
                outcomes.append(result)

        await self._notify(owner, repo, pr, outcomes)
        return outcomes

    async def _evaluate_rule(self, owner: str, repo: str, pr: PullRequestContext, rule: Rule) -> RuleOutcome:
        name = check_run_name(rule.name)
        logger = self.logger.bind(rule=rule.name, check_type=rule.check_type)

        if not has_matching_files(pr.changed_files, rule.on.paths.include, rule.on.paths.exclude):
            existing = await find_check_run(self.client, owner, repo, pr.head_sha, name)
            if existing is None:
                logger.debug(f"Rule {rule.name}: no matching files, skipping")
                return RuleOutcome(rule.name, "skipped", notify=rule.notify)

            logger.debug(f"Rule {rule.name}: no matching files, auto-passing existing check")
            await update_check_run(
                self.client, owner, repo, existing["id"], "completed", "success",
                {"title": "Rule not applicable", "summary": "No matching files changed in this PR."},
            )
            return RuleOutcome(rule.name, "not_applicable", notify=rule.notify)

        logger.info(f"Evaluating rule {rule.name}")
        existing = await find_check_run(self.client, owner, repo, pr.head_sha, name)
        if existing:
            check_run_id = existing["id"]
            await update_check_run(self.client, owner, repo, check_run_id, "in_progress")
        else:
            check_run_id = await create_check_run(self.client, owner, repo, pr.head_sha, name, "in_progress")

        check = self.registry.get(rule.check_type)
        result = await check.run(CheckContext(
            client=self.client,
            owner=owner,
            repo=repo,
            rule=rule,
            pr=pr,
            pending_store=self.pending_store,
        ))

        if rule.check_type == "external_status" and result.is_waiting:
            await self._store_pending(owner, repo, pr, rule, check_run_id)
            await update_check_run(self.client, owner, repo, check_run_id, "in_progress", output=result.to_output())
            logger.info(f"Rule {rule.name} pending: {result.title}")
            return RuleOutcome(rule.name, "pending", result, notify=rule.notify)

        result = apply_failure_message(result, rule.failure_message)
        await update_check_run(
            self.client, owner, repo, check_run_id, "completed", result.conclusion, result.to_output()
        )
        logger.info(f"Rule {rule.name} completed: {result.conclusion}")
        return RuleOutcome(rule.name, "completed", result, notify=rule.notify)

    async def _store_pending(self, owner: str, repo: str, pr: PullRequestContext, rule: Rule, check_run_id: int) -> None:
        key = pending_key(owner, repo, pr.head_sha, rule.name)

        # Keep the original deadline across repeated fallback passes
        previous = await self.pending_store.get(key)
        created_at = previous.created_at if previous is not None else self._clock()

        await self.pending_store.set(key, PendingEvaluation(
            owner=owner,
            repo=repo,
            head_sha=pr.head_sha,
            rule_name=rule.name,
            required_checks=list(rule.config.required_checks),
            check_run_id=check_run_id,
            created_at=created_at,
            timeout_minutes=rule.config.timeout_minutes,
            failure_message=rule.failure_message,
            pr_number=pr.number,
            notify=rule.notify,
        ))

    async def _post_error_check(
        self, owner: str, repo: str, pr: PullRequestContext, rule: Rule, error: BaseException
    ) -> RuleOutcome:
        result = internal_error_result(error)
        try:
            await upsert_completed_check_run(
                self.client, owner, repo, pr.head_sha, check_run_name(rule.name), "failure", result.to_output()
            )
        except Exception as e:
            self.logger.error(f"Failed to post error check run for rule {rule.name}: {e}")
        return RuleOutcome(rule.name, "error", result, notify=rule.notify)

    async def _notify(self, owner: str, repo: str, pr: PullRequestContext, outcomes: list[RuleOutcome]) -> None:
        failures = [
            FailureSummary(rule_name=o.rule_name, title=o.result.title, summary=o.result.summary)
            for o in outcomes
            if o.failed and o.notify
        ]

        if failures:
            await self.notifier.notify_failures(owner, repo, pr.number, failures)
        elif not any(o.failed for o in outcomes) and any(o.evaluated for o in outcomes):
            await self.notifier.clear_failures(owner, repo, pr.number)
