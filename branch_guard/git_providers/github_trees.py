# AGPL-3.0 License

"""
Recursive commit tree listings, cached per commit SHA.
"""

from typing import Optional

from branch_guard.algo.file_matcher import match_files
from branch_guard.algo.ttl_cache import TTLCache
from branch_guard.config_loader import get_settings
from branch_guard.git_providers.github_client import GitHubClient
from branch_guard.log import get_logger

# Trees are immutable per SHA; the short TTL only bounds memory.
_tree_cache: TTLCache[list[str]] = TTLCache(get_settings().get("cache", {}).get("ttl_seconds", 60))


async def get_tree(client: GitHubClient, owner: str, repo: str, sha: str) -> list[str]:
    """
    List every file path (blobs only) in the tree of ``sha``.

    A truncated tree is logged and the partial listing is returned.
    """
    cache_key = f"{owner}/{repo}:{sha}"
    cached = _tree_cache.get(cache_key)
    if cached is not None:
        return cached

    data = await client.get_tree(owner, repo, sha)
    if data.get("truncated"):
        get_logger().warning(
            f"Tree for {owner}/{repo}@{sha[:7]} was truncated, results may be incomplete"
        )

    files = [entry["path"] for entry in data.get("tree", []) if entry.get("type") == "blob"]
    _tree_cache.set(cache_key, files)
    return files


async def get_filtered_tree(
    client: GitHubClient,
    owner: str,
    repo: str,
    sha: str,
    include: list[str],
    exclude: Optional[list[str]] = None,
) -> list[str]:
    """Tree listing of ``sha`` narrowed to the include/exclude patterns."""
    files = await get_tree(client, owner, repo, sha)
    return match_files(files, include, exclude)


def clear_tree_cache() -> None:
    _tree_cache.clear()
