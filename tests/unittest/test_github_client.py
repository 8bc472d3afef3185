# AGPL-3.0 License

"""
Unit tests for the GitHub REST client.
"""

import json

import httpx
import pytest

from branch_guard.git_providers.github_client import GitHubAPIError, GitHubClient


class Recorder:
    """httpx transport handler answering from a list of canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def make_client(recorder, per_page=100, max_retries=2):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    client = GitHubClient(
        token="secret-token",
        base_url="https://api.example.test",
        http_client=http_client,
        max_retries=max_retries,
        base_delay=0,
    )
    client.per_page = per_page
    return client


@pytest.mark.asyncio
class TestGitHubClient:
    """Tests for GitHubClient."""

    async def test_sends_auth_headers(self):
        recorder = Recorder(httpx.Response(200, json={"number": 7}))
        client = make_client(recorder)

        pr = await client.get_pull_request("acme", "widgets", 7)

        request = recorder.requests[0]
        assert pr == {"number": 7}
        assert request.url.path == "/repos/acme/widgets/pulls/7"
        assert request.headers["authorization"] == "Bearer secret-token"
        assert request.headers["accept"] == "application/vnd.github+json"

    async def test_paginates_until_short_page(self):
        recorder = Recorder(
            httpx.Response(200, json=[{"filename": "a.py"}, {"filename": "b.py"}]),
            httpx.Response(200, json=[{"filename": "c.py"}]),
        )
        client = make_client(recorder, per_page=2)

        files = await client.list_pull_request_files("acme", "widgets", 7)

        assert files == ["a.py", "b.py", "c.py"]
        assert [r.url.params["page"] for r in recorder.requests] == ["1", "2"]
        assert recorder.requests[0].url.params["per_page"] == "2"

    async def test_paginates_wrapped_lists(self):
        recorder = Recorder(httpx.Response(200, json={"total_count": 1, "check_runs": [{"id": 1, "name": "lint"}]}))
        client = make_client(recorder)

        runs = await client.list_check_runs("acme", "widgets", "abc", check_name="lint")

        assert runs == [{"id": 1, "name": "lint"}]
        assert recorder.requests[0].url.params["check_name"] == "lint"

    async def test_error_response_raises(self):
        recorder = Recorder(httpx.Response(404, json={"message": "Not Found"}))
        client = make_client(recorder)

        with pytest.raises(GitHubAPIError) as exc_info:
            await client.get_content("acme", "widgets", ".github/branch-guard.yml")

        assert exc_info.value.status == 404
        assert exc_info.value.message == "Not Found"
        assert len(recorder.requests) == 1

    async def test_transient_error_retried(self):
        recorder = Recorder(
            httpx.Response(502, text="Bad Gateway"),
            httpx.Response(200, json={"id": 9}),
        )
        client = make_client(recorder)

        result = await client.create_check_run("acme", "widgets", {"name": "branch-guard/ci", "head_sha": "abc"})

        assert result == {"id": 9}
        assert len(recorder.requests) == 2

    async def test_no_content(self):
        recorder = Recorder(httpx.Response(204))
        client = make_client(recorder)

        assert await client.delete_issue_comment("acme", "widgets", 3) is None
        assert recorder.requests[0].method == "DELETE"

    async def test_request_reviewers_payload(self):
        recorder = Recorder(httpx.Response(201, json={}))
        client = make_client(recorder)

        await client.request_reviewers("acme", "widgets", 7, reviewers=["dave"])

        assert json.loads(recorder.requests[0].content) == {"reviewers": ["dave"], "team_reviewers": []}
