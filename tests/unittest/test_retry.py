# AGPL-3.0 License

"""
Unit tests for the retry executor.
"""

import pytest

from branch_guard.algo.retry import get_retry_after, is_retryable, with_retry
from branch_guard.git_providers.github_client import GitHubAPIError


class FlakyCall:
    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.mark.asyncio
class TestWithRetry:
    """Tests for with_retry."""

    async def test_success_without_retry(self):
        call = FlakyCall([])
        sleep = RecordingSleep()

        assert await with_retry(call, max_retries=3, base_delay=1, sleep=sleep) == "ok"
        assert call.calls == 1
        assert sleep.delays == []

    async def test_retries_server_errors_with_backoff(self):
        call = FlakyCall([GitHubAPIError(502, "Bad Gateway"), GitHubAPIError(503, "Unavailable")])
        sleep = RecordingSleep()

        assert await with_retry(call, max_retries=3, base_delay=1, sleep=sleep) == "ok"
        assert call.calls == 3
        assert sleep.delays == [1, 2]

    async def test_gives_up_after_max_retries(self):
        """The last error propagates unchanged after exactly max_retries + 1 attempts."""
        last = GitHubAPIError(500, "Server Error")
        call = FlakyCall([GitHubAPIError(500, "Server Error")] * 3 + [last])
        sleep = RecordingSleep()

        with pytest.raises(GitHubAPIError) as exc_info:
            await with_retry(call, max_retries=3, base_delay=0.5, sleep=sleep)

        assert exc_info.value is last
        assert call.calls == 4
        assert sleep.delays == [0.5, 1.0, 2.0]

    async def test_uses_retry_after_header(self):
        call = FlakyCall([GitHubAPIError(429, "Too Many Requests", {"Retry-After": "7"})])
        sleep = RecordingSleep()

        await with_retry(call, max_retries=3, base_delay=1, sleep=sleep)

        assert sleep.delays == [7.0]

    async def test_rate_limited_403_is_retried(self):
        call = FlakyCall([GitHubAPIError(403, "rate limit", {"x-ratelimit-remaining": "0"})])
        sleep = RecordingSleep()

        await with_retry(call, max_retries=3, base_delay=1, sleep=sleep)

        assert call.calls == 2

    @pytest.mark.parametrize("status", [403, 404, 422])
    async def test_permanent_errors_not_retried(self, status):
        call = FlakyCall([GitHubAPIError(status, "nope")])
        sleep = RecordingSleep()

        with pytest.raises(GitHubAPIError):
            await with_retry(call, max_retries=3, base_delay=1, sleep=sleep)

        assert call.calls == 1
        assert sleep.delays == []

    async def test_non_http_errors_not_retried(self):
        call = FlakyCall([ValueError("bad")])

        with pytest.raises(ValueError):
            await with_retry(call, max_retries=3, base_delay=1, sleep=RecordingSleep())

        assert call.calls == 1


class TestRetryClassification:
    """Tests for the retry classification helpers."""

    def test_is_retryable(self):
        assert is_retryable(GitHubAPIError(429, ""))
        assert is_retryable(GitHubAPIError(500, ""))
        assert is_retryable(GitHubAPIError(403, "", {"retry-after": "1"}))
        assert not is_retryable(GitHubAPIError(403, "", {"x-ratelimit-remaining": "42"}))
        assert not is_retryable(GitHubAPIError(501, ""))
        assert not is_retryable(RuntimeError("no status"))

    def test_get_retry_after(self):
        assert get_retry_after(GitHubAPIError(429, "", {"retry-after": "2.5"})) == 2.5
        assert get_retry_after(GitHubAPIError(429, "", {"retry-after": "soon"})) is None
        assert get_retry_after(GitHubAPIError(429, "", {"retry-after": "0"})) is None
        assert get_retry_after(GitHubAPIError(429, "")) is None
