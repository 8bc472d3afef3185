# AGPL-3.0 License

"""
Async GitHub REST API client.

Every request goes through the retry executor, so callers only ever see
errors that are permanent or that survived all retries.
"""

from typing import Any, Optional

import httpx

from branch_guard.algo.retry import with_retry
from branch_guard.config_loader import get_settings
from branch_guard.log import get_logger


class GitHubAPIError(Exception):
    """
    Non-2xx response from the GitHub API.

    Attributes:
        status: HTTP status code
        headers: Response headers with lower-cased names
    """

    def __init__(self, status: int, message: str, headers: Optional[dict] = None):
        super().__init__(f"GitHub API error {status}: {message}")
        self.status = status
        self.message = message
        self.headers = {str(k).lower(): v for k, v in (headers or {}).items()}


class GitHubClient:
    """Client for the subset of the GitHub REST API Branch Guard needs."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
    ):
        """
        Args:
            token: Installation access token or personal access token
            base_url: API root (defaults to config)
            http_client: Pre-built httpx client, mainly for tests
            max_retries: Retry budget per request (defaults to config)
            base_delay: Base backoff delay in seconds (defaults to config)
        """
        github_settings = get_settings().get("github", {})
        self.base_url = (base_url or github_settings.get("base_url", "https://api.github.com")).rstrip("/")
        self.per_page = github_settings.get("per_page", 100)
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "branch-guard",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=github_settings.get("timeout_seconds", 30)
        )
        self.logger = get_logger()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- transport ---

    async def _send(self, method: str, path: str, params: Optional[dict] = None, json: Any = None) -> Any:
        response = await self._client.request(
            method,
            f"{self.base_url}{path}",
            params=params,
            json=json,
            headers=self.headers,
        )
        if response.status_code >= 400:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise GitHubAPIError(response.status_code, message, dict(response.headers))

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def request(self, method: str, path: str, params: Optional[dict] = None, json: Any = None) -> Any:
        return await with_retry(
            lambda: self._send(method, path, params=params, json=json),
            max_retries=self.max_retries,
            base_delay=self.base_delay,
        )

    async def paginate(self, path: str, params: Optional[dict] = None, item_key: Optional[str] = None) -> list:
        """
        Fetch every page of a list endpoint.

        Args:
            path: API path
            params: Extra query parameters
            item_key: Key holding the list when the endpoint wraps it in an object

        Returns:
            Concatenated items of all pages
        """
        items = []
        page = 1
        while True:
            page_params = {**(params or {}), "per_page": self.per_page, "page": page}
            data = await self.request("GET", path, params=page_params)
            page_items = (data or {}).get(item_key, []) if item_key else (data or [])
            items.extend(page_items)
            if len(page_items) < self.per_page:
                break
            page += 1
        return items

    # --- pull requests ---

    async def get_pull_request(self, owner: str, repo: str, number: int) -> dict:
        return await self.request("GET", f"/repos/{owner}/{repo}/pulls/{number}")

    async def list_open_pull_requests(self, owner: str, repo: str, base: Optional[str] = None) -> list[dict]:
        params = {"state": "open"}
        if base:
            params["base"] = base
        return await self.paginate(f"/repos/{owner}/{repo}/pulls", params)

    async def list_pull_request_files(self, owner: str, repo: str, number: int) -> list[str]:
        files = await self.paginate(f"/repos/{owner}/{repo}/pulls/{number}/files")
        paths = [f["filename"] for f in files]

        threshold = get_settings().get("github", {}).get("large_pr_threshold", 1000)
        if len(paths) >= threshold:
            self.logger.warning(f"PR {owner}/{repo}#{number} has a large number of changed files ({len(paths)})")

        return paths

    async def list_reviews(self, owner: str, repo: str, number: int) -> list[dict]:
        return await self.paginate(f"/repos/{owner}/{repo}/pulls/{number}/reviews")

    async def request_reviewers(
        self,
        owner: str,
        repo: str,
        number: int,
        reviewers: Optional[list[str]] = None,
        team_reviewers: Optional[list[str]] = None,
    ) -> None:
        await self.request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{number}/requested_reviewers",
            json={"reviewers": reviewers or [], "team_reviewers": team_reviewers or []},
        )

    # --- git data ---

    async def get_tree(self, owner: str, repo: str, sha: str) -> dict:
        return await self.request(
            "GET", f"/repos/{owner}/{repo}/git/trees/{sha}", params={"recursive": "true"}
        )

    async def compare_commits(self, owner: str, repo: str, base: str, head: str) -> dict:
        return await self.request("GET", f"/repos/{owner}/{repo}/compare/{base}...{head}")

    async def get_content(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> dict:
        params = {"ref": ref} if ref else None
        return await self.request("GET", f"/repos/{owner}/{repo}/contents/{path}", params=params)

    # --- check runs ---

    async def list_check_runs(self, owner: str, repo: str, ref: str, check_name: Optional[str] = None) -> list[dict]:
        params = {"check_name": check_name} if check_name else None
        return await self.paginate(f"/repos/{owner}/{repo}/commits/{ref}/check-runs", params, item_key="check_runs")

    async def create_check_run(self, owner: str, repo: str, payload: dict) -> dict:
        return await self.request("POST", f"/repos/{owner}/{repo}/check-runs", json=payload)

    async def update_check_run(self, owner: str, repo: str, check_run_id: int, payload: dict) -> dict:
        return await self.request("PATCH", f"/repos/{owner}/{repo}/check-runs/{check_run_id}", json=payload)

    # --- issue comments ---

    async def list_issue_comments(self, owner: str, repo: str, number: int) -> list[dict]:
        return await self.paginate(f"/repos/{owner}/{repo}/issues/{number}/comments")

    async def create_issue_comment(self, owner: str, repo: str, number: int, body: str) -> dict:
        return await self.request("POST", f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": body})

    async def update_issue_comment(self, owner: str, repo: str, comment_id: int, body: str) -> dict:
        return await self.request("PATCH", f"/repos/{owner}/{repo}/issues/comments/{comment_id}", json={"body": body})

    async def delete_issue_comment(self, owner: str, repo: str, comment_id: int) -> None:
        await self.request("DELETE", f"/repos/{owner}/{repo}/issues/comments/{comment_id}")

    # --- organizations ---

    async def list_team_members(self, org: str, team_slug: str) -> list[str]:
        members = await self.paginate(f"/orgs/{org}/teams/{team_slug}/members")
        return [m["login"] for m in members]
