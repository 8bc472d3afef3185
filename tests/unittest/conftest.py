# AGPL-3.0 License

"""
Shared fixtures: an in-memory stand-in for the GitHub API.
"""

import base64
import itertools
from typing import Optional

import pytest

from branch_guard.git_providers.github_auth import clear_token_cache
from branch_guard.git_providers.github_client import GitHubAPIError
from branch_guard.git_providers.github_trees import clear_tree_cache
from branch_guard.rules.rule_loader import clear_config_cache


class FakeGitHubClient:
    """
    Records writes and serves reads from plain dicts.

    Check runs and comments are kept in creation order; listings return the
    most recent check run first, like the API.
    """

    def __init__(self):
        self._ids = itertools.count(1000)
        self.pull_requests: dict[int, dict] = {}
        self.pr_files: dict[int, list[str]] = {}
        self.trees: dict[str, list[str]] = {}
        self.reviews: dict[int, list[dict]] = {}
        self.team_members: dict[str, list[str]] = {}
        self.team_errors: dict[str, GitHubAPIError] = {}
        self.comparison: Optional[dict] = None
        self.contents: dict[str, str] = {}
        self.check_runs: list[dict] = []
        self.comments: list[dict] = []
        self.reviewer_requests: list[dict] = []
        self.request_reviewers_error: Optional[Exception] = None
        self.fail_on: dict[str, Exception] = {}
        self.calls: list[str] = []

    def _record(self, name: str):
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    # --- pull requests ---

    async def get_pull_request(self, owner, repo, number):
        self._record("get_pull_request")
        return self.pull_requests[number]

    async def list_open_pull_requests(self, owner, repo, base=None):
        self._record("list_open_pull_requests")
        return [pr for pr in self.pull_requests.values() if base is None or pr["base"]["ref"] == base]

    async def list_pull_request_files(self, owner, repo, number):
        self._record("list_pull_request_files")
        return list(self.pr_files.get(number, []))

    async def list_reviews(self, owner, repo, number):
        self._record("list_reviews")
        return list(self.reviews.get(number, []))

    async def request_reviewers(self, owner, repo, number, reviewers=None, team_reviewers=None):
        self._record("request_reviewers")
        if self.request_reviewers_error:
            raise self.request_reviewers_error
        self.reviewer_requests.append({"reviewers": reviewers or [], "team_reviewers": team_reviewers or []})

    # --- git data ---

    async def get_tree(self, owner, repo, sha):
        self._record("get_tree")
        return {"tree": [{"path": p, "type": "blob"} for p in self.trees.get(sha, [])], "truncated": False}

    async def compare_commits(self, owner, repo, base, head):
        self._record("compare_commits")
        return self.comparison

    async def get_content(self, owner, repo, path, ref=None):
        self._record("get_content")
        if path not in self.contents:
            raise GitHubAPIError(404, "Not Found")
        return {"type": "file", "content": base64.b64encode(self.contents[path].encode()).decode()}

    # --- check runs ---

    async def list_check_runs(self, owner, repo, ref, check_name=None):
        self._record("list_check_runs")
        runs = [r for r in self.check_runs if r["head_sha"] == ref and (check_name is None or r["name"] == check_name)]
        return list(reversed(runs))

    async def create_check_run(self, owner, repo, payload):
        self._record("create_check_run")
        run = {"id": next(self._ids), "conclusion": None, "output": None, **payload}
        self.check_runs.append(run)
        return run

    async def update_check_run(self, owner, repo, check_run_id, payload):
        self._record("update_check_run")
        run = next(r for r in self.check_runs if r["id"] == check_run_id)
        run.update(payload)
        return run

    # --- issue comments ---

    async def list_issue_comments(self, owner, repo, number):
        self._record("list_issue_comments")
        return [c for c in self.comments if c["number"] == number]

    async def create_issue_comment(self, owner, repo, number, body):
        self._record("create_issue_comment")
        comment = {"id": next(self._ids), "number": number, "body": body}
        self.comments.append(comment)
        return comment

    async def update_issue_comment(self, owner, repo, comment_id, body):
        self._record("update_issue_comment")
        comment = next(c for c in self.comments if c["id"] == comment_id)
        comment["body"] = body
        return comment

    async def delete_issue_comment(self, owner, repo, comment_id):
        self._record("delete_issue_comment")
        self.comments = [c for c in self.comments if c["id"] != comment_id]

    # --- organizations ---

    async def list_team_members(self, org, team_slug):
        self._record("list_team_members")
        if team_slug in self.team_errors:
            raise self.team_errors[team_slug]
        return list(self.team_members.get(team_slug, []))

    # --- helpers ---

    def add_check_run(self, name, head_sha, status="completed", conclusion=None, **extra) -> dict:
        run = {"id": next(self._ids), "name": name, "head_sha": head_sha, "status": status,
               "conclusion": conclusion, "output": None, **extra}
        self.check_runs.append(run)
        return run

    def runs_named(self, name) -> list[dict]:
        return [r for r in self.check_runs if r["name"] == name]

    def writes(self) -> list[str]:
        return [c for c in self.calls if c.startswith(("create_", "update_", "delete_", "request_"))]


def make_pr(number=1, head_sha="head123", base_ref="main", base_sha="base123", body=None) -> dict:
    return {
        "number": number,
        "head": {"sha": head_sha},
        "base": {"ref": base_ref, "sha": base_sha},
        "body": body,
    }


@pytest.fixture
def client():
    return FakeGitHubClient()


@pytest.fixture
def pr_payload():
    return make_pr


@pytest.fixture(autouse=True)
def clear_caches():
    clear_tree_cache()
    clear_config_cache()
    clear_token_cache()
    yield
    clear_tree_cache()
    clear_config_cache()
    clear_token_cache()
