# AGPL-3.0 License

"""
approval_gate: require approving reviews from specific teams and/or users.
"""

import asyncio
from dataclasses import dataclass, field

from branch_guard.checks.base_check import BaseCheck
from branch_guard.checks.check_context import CheckContext
from branch_guard.checks.check_result import CheckResult
from branch_guard.git_providers.github_client import GitHubAPIError, GitHubClient

MEANINGFUL_STATES = ("APPROVED", "CHANGES_REQUESTED")


@dataclass
class Requirement:
    """One configured team or user; satisfied by an approval from any valid approver."""
    label: str
    kind: str  # "team" or "user"
    slug: str
    valid_approvers: set[str] = field(default_factory=set)


@dataclass
class ApprovalStatus:
    passed: bool
    approvers: list[str] = field(default_factory=list)
    missing: list[Requirement] = field(default_factory=list)
    blockers: list[str] = field(default_factory=list)


def latest_review_states(reviews: list[dict]) -> dict[str, str]:
    """
    Collapse reviews (in submission order) to one state per reviewer.

    Logins are compared case-insensitively. COMMENTED, DISMISSED and other
    non-decisive states are skipped, so they never overwrite an earlier
    approval or change request.
    """
    latest: dict[str, str] = {}
    for review in reviews:
        user = review.get("user") or {}
        login = user.get("login")
        state = review.get("state")
        if not login or state not in MEANINGFUL_STATES:
            continue
        latest[login.lower()] = state
    return latest


def evaluate_approvals(latest: dict[str, str], requirements: list[Requirement], mode: str) -> ApprovalStatus:
    """
    Decide the gate from the latest review states.

    Any outstanding change request fails the gate before requirements are
    considered, including one from a reviewer who is not required.
    """
    blockers = [user for user, state in latest.items() if state == "CHANGES_REQUESTED"]
    if blockers:
        return ApprovalStatus(passed=False, blockers=blockers)

    approvers = [user for user, state in latest.items() if state == "APPROVED"]
    approver_set = set(approvers)

    satisfied = [req for req in requirements if req.valid_approvers & approver_set]
    missing = [req for req in requirements if not req.valid_approvers & approver_set]

    passed = bool(satisfied) if mode == "any" else not missing
    relevant = [a for a in approvers if any(a in req.valid_approvers for req in requirements)]
    return ApprovalStatus(passed=passed, approvers=relevant, missing=missing)


class ApprovalGateCheck(BaseCheck):
    """
    Passes when the configured teams/users have approved the PR.

    ``any`` mode needs one satisfied requirement, ``all`` mode needs every
    team and every user. When ``request_reviewers`` is enabled, review is
    requested from exactly the unmet requirements.
    """

    check_type = "approval_gate"

    async def run(self, context: CheckContext) -> CheckResult:
        config = context.rule.config
        required_teams = config.required_teams or []
        required_users = config.required_users or []

        reviews = await context.client.list_reviews(context.owner, context.repo, context.pr.number)
        latest = latest_review_states(reviews)
        team_members = await self._get_team_members(context.client, context.owner, required_teams)

        requirements = [
            Requirement(label=f"@{team}", kind="team", slug=team, valid_approvers=team_members.get(team, set()))
            for team in required_teams
        ] + [
            Requirement(label=f"@{user}", kind="user", slug=user, valid_approvers={user.lower()})
            for user in required_users
        ]

        status = evaluate_approvals(latest, requirements, config.mode)

        if status.blockers:
            return CheckResult(
                conclusion="failure",
                title="Changes requested",
                summary=(
                    f"The following reviewer(s) have requested changes: "
                    f"{', '.join(f'@{b}' for b in status.blockers)}.\n\n"
                    f"Resolve the requested changes and re-request approval."
                ),
            )

        all_labels = ", ".join(req.label for req in requirements)
        mode_text = "all of" if config.mode == "all" else "at least one of"

        if status.passed:
            return CheckResult(
                conclusion="success",
                title="Approval requirements met",
                summary=(
                    f"Approved by: {', '.join(f'@{a}' for a in status.approvers)}\n\n"
                    f"Required {mode_text}: {all_labels}"
                ),
            )

        if config.request_reviewers:
            await self._request_reviews(context, status.missing)

        return CheckResult(
            conclusion="failure",
            title=f"Approval required from: {', '.join(req.label for req in status.missing)}",
            summary=(
                f"No approving reviews from the required teams/users.\n\n"
                f"Required {mode_text}: {all_labels}"
            ),
        )

    async def _get_team_members(self, client: GitHubClient, owner: str, teams: list[str]) -> dict[str, set[str]]:
        members = await asyncio.gather(*(self._get_members(client, owner, team) for team in teams))
        return dict(zip(teams, members))

    async def _get_members(self, client: GitHubClient, owner: str, team: str) -> set[str]:
        org, _, slug = team.rpartition("/")
        try:
            logins = await client.list_team_members(org or owner, slug)
        except GitHubAPIError as e:
            if e.status in (403, 404):
                self.logger.warning(
                    f"Failed to fetch members of team {team} (status {e.status}); "
                    f"team may not exist or the app lacks permissions"
                )
                return set()
            raise

        self.logger.debug(f"Fetched {len(logins)} member(s) of team {team}")
        return {login.lower() for login in logins}

    async def _request_reviews(self, context: CheckContext, missing: list[Requirement]) -> None:
        reviewers = [req.slug for req in missing if req.kind == "user"]
        team_reviewers = [req.slug.rpartition("/")[2] for req in missing if req.kind == "team"]
        if not reviewers and not team_reviewers:
            return

        try:
            await context.client.request_reviewers(
                context.owner, context.repo, context.pr.number,
                reviewers=reviewers, team_reviewers=team_reviewers,
            )
            self.logger.info(f"Requested review from {', '.join(reviewers + team_reviewers)}")
        except GitHubAPIError as e:
            self.logger.warning(f"Failed to request reviewers for PR #{context.pr.number}: {e}")
