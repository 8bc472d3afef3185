# AGPL-3.0 License

"""
PR Checks tool - evaluates the repository's branch rules against pull requests.

Loads the rule configuration, reports configuration problems as a single
check run, and hands valid configurations to the orchestrator, one PR at a
time or in rate-limit friendly batches.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from branch_guard.algo.file_matcher import has_matching_files
from branch_guard.checks.check_context import PullRequestContext
from branch_guard.checks.orchestrator import CheckOrchestrator, RuleOutcome, apply_failure_message
from branch_guard.config_loader import get_settings
from branch_guard.git_providers.check_runs import (
    CONFIG_CHECK_NAME,
    clear_config_error,
    is_own_check_run,
    post_config_error,
    update_check_run,
)
from branch_guard.git_providers.github_client import GitHubClient
from branch_guard.log import get_logger
from branch_guard.rules.rule_loader import ConfigLoadResult, load_rule_config
from branch_guard.rules.rule_models import RuleConfig
from branch_guard.state.pending_store import InMemoryPendingStore, PendingEvaluationStore
from branch_guard.tools.pr_notifications import FailureSummary

# Shared by every request handled by this process so that a check_run event
# can resolve what an earlier pull_request event left pending.
_pending_store = InMemoryPendingStore()


def get_pending_store() -> PendingEvaluationStore:
    return _pending_store


class PRChecks:
    """
    PR Checks tool - runs branch rules for pull requests of one installation.
    """

    def __init__(
        self,
        client: GitHubClient,
        pending_store: Optional[PendingEvaluationStore] = None,
        orchestrator: Optional[CheckOrchestrator] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize PR Checks tool.

        Args:
            client: Installation-scoped GitHub client
            pending_store: Store for waiting external_status rules (process-wide by default)
            orchestrator: Rule orchestrator (built from client and store when omitted)
            sleep: Coroutine used for the pause between batches
        """
        self.client = client
        self.pending_store = pending_store if pending_store is not None else get_pending_store()
        self.orchestrator = orchestrator or CheckOrchestrator(client, pending_store=self.pending_store)
        self._sleep = sleep
        self.logger = get_logger()

        settings = get_settings().get("branch_guard", {})
        self.batch_size = max(1, int(settings.get("batch_size", 5)))
        self.batch_delay = float(settings.get("batch_delay_seconds", 0.5))
        self.config_path = settings.get("config_path", ".github/branch-guard.yml")

    async def load_config(self, owner: str, repo: str) -> ConfigLoadResult:
        return await load_rule_config(self.client, owner, repo)

    async def build_context(self, owner: str, repo: str, pr: dict) -> PullRequestContext:
        """Snapshot a pull request payload together with its changed files."""
        changed_files = await self.client.list_pull_request_files(owner, repo, pr["number"])
        return PullRequestContext.from_payload(pr, changed_files)

    async def evaluate_pull_request(
        self,
        owner: str,
        repo: str,
        pr: dict,
        config_result: Optional[ConfigLoadResult] = None,
    ) -> list[RuleOutcome]:
        """
        Evaluate every applicable rule for one pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            pr: GitHub pull request object
            config_result: Already loaded configuration, loaded here when None

        Returns:
            Rule outcomes, empty when the configuration is missing or invalid
        """
        if config_result is None:
            config_result = await self.load_config(owner, repo)

        if config_result.status == "missing":
            self.logger.debug(f"No branch-guard config found in {owner}/{repo}, skipping")
            return []

        head_sha = pr["head"]["sha"]
        if config_result.status == "invalid":
            self.logger.warning(f"Invalid branch-guard config in {owner}/{repo}: {config_result.errors}")
            await post_config_error(self.client, owner, repo, head_sha, config_result.errors, self.config_path)
            return []

        await clear_config_error(self.client, owner, repo, head_sha)
        context = await self.build_context(owner, repo, pr)
        return await self.orchestrator.evaluate(owner, repo, context, config_result.config)

    async def evaluate_pull_request_number(
        self,
        owner: str,
        repo: str,
        number: int,
        config_result: Optional[ConfigLoadResult] = None,
    ) -> list[RuleOutcome]:
        """Fetch the pull request first; webhook stubs lack the body and base SHA."""
        pr = await self.client.get_pull_request(owner, repo, number)
        return await self.evaluate_pull_request(owner, repo, pr, config_result)

    async def evaluate_open_pull_requests(
        self, owner: str, repo: str, config: RuleConfig, prs: list[dict]
    ) -> None:
        """
        Evaluate many pull requests in fixed-size batches.

        PRs of a batch run concurrently and a pause separates batches. One PR
        failing is logged and never aborts the rest.
        """
        config_result = ConfigLoadResult.loaded(config)
        for start in range(0, len(prs), self.batch_size):
            batch = prs[start:start + self.batch_size]
            results = await asyncio.gather(
                *(self.evaluate_pull_request(owner, repo, pr, config_result) for pr in batch),
                return_exceptions=True,
            )
            for pr, result in zip(batch, results):
                if isinstance(result, Exception):
                    self.logger.error(f"Failed to evaluate {owner}/{repo}#{pr.get('number')}: {result}")

            if start + self.batch_size < len(prs):
                await self._sleep(self.batch_delay)

    async def reevaluate_branch(self, owner: str, repo: str, branch: str, pushed_files: list[str]) -> None:
        """Re-evaluate open PRs into ``branch`` when a push touches files some rule watches."""
        config_result = await self.load_config(owner, repo)
        if config_result.status != "loaded":
            self.logger.debug(f"Config {config_result.status} for {owner}/{repo}, skipping push")
            return

        affected = [
            rule.name
            for rule in config_result.config.rules
            if branch in rule.on.branches
            and has_matching_files(pushed_files, rule.on.paths.include, rule.on.paths.exclude)
        ]
        if not affected:
            self.logger.debug(f"Push to {owner}/{repo}@{branch} affects no rules")
            return

        prs = await self.client.list_open_pull_requests(owner, repo, base=branch)
        if not prs:
            self.logger.debug(f"No open PRs target {owner}/{repo}@{branch}")
            return

        self.logger.info(f"Push to {branch} affects {affected}; re-evaluating {len(prs)} open PR(s)")
        await self.evaluate_open_pull_requests(owner, repo, config_result.config, prs)

    async def backfill_repository(self, owner: str, repo: str) -> None:
        """Evaluate every open PR of a newly installed repository."""
        config_result = await self.load_config(owner, repo)
        if config_result.status == "missing":
            self.logger.debug(f"No branch-guard config found in {owner}/{repo}, skipping")
            return
        if config_result.status == "invalid":
            self.logger.warning(f"Invalid branch-guard config in {owner}/{repo}, skipping: {config_result.errors}")
            return

        prs = await self.client.list_open_pull_requests(owner, repo)
        if not prs:
            self.logger.debug(f"No open PRs in {owner}/{repo}")
            return

        self.logger.info(f"Evaluating {len(prs)} open PR(s) in {owner}/{repo}")
        await self.evaluate_open_pull_requests(owner, repo, config_result.config, prs)

    async def resolve_pending(self, owner: str, repo: str, head_sha: str, completed_check: str) -> int:
        """
        Re-check pending external_status rules waiting on ``completed_check``.

        A rule that ends in failure also refreshes the PR's status comment
        when the rule notifies.

        Returns:
            Number of pending evaluations that reached a terminal result
        """
        pending = await self.pending_store.list_for_commit(owner, repo, head_sha)
        relevant = [p for p in pending if completed_check in p.required_checks]
        if not relevant:
            return 0

        self.logger.info(
            f"{completed_check} completed; re-checking pending rules {[p.rule_name for p in relevant]}"
        )
        check = self.orchestrator.registry.get("external_status")

        resolved = 0
        notify_prs = set()
        for evaluation in relevant:
            try:
                result = await check.resolve_pending(self.client, evaluation, self.pending_store)
                if result is None:
                    self.logger.debug(f"Rule {evaluation.rule_name} still pending")
                    continue

                result = apply_failure_message(result, evaluation.failure_message)
                await update_check_run(
                    self.client, owner, repo, evaluation.check_run_id,
                    "completed", result.conclusion, result.to_output(),
                )
                resolved += 1
                self.logger.info(f"Rule {evaluation.rule_name} resolved: {result.conclusion}")
                if not result.passed and evaluation.notify and evaluation.pr_number is not None:
                    notify_prs.add(evaluation.pr_number)
            except Exception as e:
                self.logger.error(f"Failed to resolve pending rule {evaluation.rule_name}: {e}")

        for pr_number in sorted(notify_prs):
            try:
                await self.refresh_failure_comment(owner, repo, head_sha, pr_number)
            except Exception as e:
                self.logger.error(f"Failed to refresh status comment on {owner}/{repo}#{pr_number}: {e}")
        return resolved

    async def refresh_failure_comment(self, owner: str, repo: str, head_sha: str, pr_number: int) -> None:
        """
        Rebuild the failure list of the status comment from the rule check runs on ``head_sha``.

        The latest run of each rule counts; rules configured with ``notify: false`` are left out.
        """
        config_result = await self.load_config(owner, repo)
        muted = set()
        if config_result.status == "loaded":
            muted = {rule.name for rule in config_result.config.rules if not rule.notify}

        latest = {}
        for run in await self.client.list_check_runs(owner, repo, head_sha):
            name = run.get("name", "")
            if is_own_check_run(name) and name != CONFIG_CHECK_NAME and name not in latest:
                latest[name] = run

        failures = []
        for name, run in latest.items():
            rule_name = name.split("/", 1)[1]
            if run.get("status") != "completed" or run.get("conclusion") != "failure" or rule_name in muted:
                continue
            output = run.get("output") or {}
            failures.append(FailureSummary(
                rule_name=rule_name, title=output.get("title") or "", summary=output.get("summary") or "",
            ))

        if failures:
            await self.orchestrator.notifier.notify_failures(owner, repo, pr_number, failures)
