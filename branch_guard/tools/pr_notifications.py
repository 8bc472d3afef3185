# AGPL-3.0 License

"""
Sticky pull request comment summarizing failing rules.

There is at most one such comment per PR. It is recognized by a hidden
marker and is only ever created once, then edited in place.
"""

from dataclasses import dataclass
from typing import Optional

from jinja2 import Environment

from branch_guard.config_loader import get_settings
from branch_guard.git_providers.github_client import GitHubClient
from branch_guard.log import get_logger

COMMENT_MARKER = "<!-- branch-guard-status -->"

_env = Environment(trim_blocks=True, lstrip_blocks=True, autoescape=False)

FAILURE_TEMPLATE = _env.from_string("""\
{{ marker }}
## ❌ Branch Guard: {{ failures | length }} check(s) failed

| Rule | Result | Details |
|------|--------|---------|
{% for failure in failures %}
| `{{ failure.rule_name }}` | ❌ Failed | {{ failure.title | replace("|", "\\\\|") }} |
{% endfor %}

> Resolve the issues above and push again, or {% if recheck_url %}[🔄 Recheck]({{ recheck_url }}) and {% endif %}comment `/recheck` to re-evaluate.
>
> *This comment is posted by Branch Guard and updates automatically.*""")

SUCCESS_TEMPLATE = _env.from_string("""\
{{ marker }}
## ✅ Branch Guard: All checks passed

All previously failing checks have been resolved.

> *This comment is posted by Branch Guard and updates automatically.*""")


@dataclass
class FailureSummary:
    rule_name: str
    title: str
    summary: str = ""


def build_failure_body(
    failures: list[FailureSummary],
    owner: Optional[str] = None,
    repo: Optional[str] = None,
    pr_number: Optional[int] = None,
) -> str:
    recheck_url = None
    if owner and repo and pr_number:
        web_url = get_settings().get("github", {}).get("web_url", "https://github.com").rstrip("/")
        recheck_url = f"{web_url}/{owner}/{repo}/pull/{pr_number}#issuecomment-new"
    return FAILURE_TEMPLATE.render(marker=COMMENT_MARKER, failures=failures, recheck_url=recheck_url)


def build_success_body() -> str:
    return SUCCESS_TEMPLATE.render(marker=COMMENT_MARKER)


class NotificationManager:
    """
    Maintains the Branch Guard status comment on a pull request.

    Delivery problems are logged and never raised: the check runs are the
    authoritative outcome and must not depend on the comment.
    """

    def __init__(self, client: GitHubClient):
        self.client = client
        self.logger = get_logger()

    async def find_status_comment(self, owner: str, repo: str, pr_number: int) -> Optional[dict]:
        comments = await self.client.list_issue_comments(owner, repo, pr_number)
        for comment in comments:
            if COMMENT_MARKER in (comment.get("body") or ""):
                return comment
        return None

    async def notify_failures(self, owner: str, repo: str, pr_number: int, failures: list[FailureSummary]) -> None:
        """Create or update the status comment to list ``failures``."""
        try:
            body = build_failure_body(failures, owner, repo, pr_number)
            existing = await self.find_status_comment(owner, repo, pr_number)
            if existing is None:
                await self.client.create_issue_comment(owner, repo, pr_number, body)
                self.logger.debug(f"Created status comment on {owner}/{repo}#{pr_number}")
            elif existing.get("body") != body:
                await self.client.update_issue_comment(owner, repo, existing["id"], body)
                self.logger.debug(f"Updated status comment {existing['id']} with {len(failures)} failure(s)")
        except Exception as e:
            self.logger.error(f"Failed to post status comment on {owner}/{repo}#{pr_number}: {e}")

    async def clear_failures(self, owner: str, repo: str, pr_number: int) -> None:
        """Switch an existing status comment to the all-passed message. No comment, no-op."""
        try:
            existing = await self.find_status_comment(owner, repo, pr_number)
            if existing is None:
                self.logger.debug(f"No status comment on {owner}/{repo}#{pr_number}, nothing to clear")
                return

            body = build_success_body()
            if existing.get("body") == body:
                return

            await self.client.update_issue_comment(owner, repo, existing["id"], body)
            self.logger.debug(f"Updated status comment {existing['id']} to success")
        except Exception as e:
            self.logger.error(f"Failed to clear status comment on {owner}/{repo}#{pr_number}: {e}")
