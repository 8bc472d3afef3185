# AGPL-3.0 License

from branch_guard.git_providers.github_client import GitHubAPIError, GitHubClient

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
]
