# AGPL-3.0 License

"""
Context data for rule checks.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from branch_guard.git_providers.github_client import GitHubClient
    from branch_guard.rules.rule_models import Rule
    from branch_guard.state.pending_store import PendingEvaluationStore


@dataclass
class PullRequestContext:
    """
    Snapshot of the pull request being evaluated.

    Rebuilt for every evaluation and never shared between them.
    """

    number: int
    head_sha: str
    base_branch: str
    base_sha: str
    changed_files: list[str] = field(default_factory=list)
    body: Optional[str] = None

    @classmethod
    def from_payload(cls, pr: dict, changed_files: list[str]) -> "PullRequestContext":
        """Build from a GitHub pull request object."""
        return cls(
            number=pr["number"],
            head_sha=pr["head"]["sha"],
            base_branch=pr["base"]["ref"],
            base_sha=pr["base"]["sha"],
            changed_files=changed_files,
            body=pr.get("body"),
        )


@dataclass
class CheckContext:
    """
    Everything a check needs to evaluate one rule against one pull request.
    """

    client: "GitHubClient"
    owner: str
    repo: str
    rule: "Rule"
    pr: PullRequestContext
    pending_store: Optional["PendingEvaluationStore"] = None
