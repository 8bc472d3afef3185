# AGPL-3.0 License

"""
GitHub App authentication: app JWT to installation access token.
"""

import time
from typing import Optional

import httpx
import jwt

from branch_guard.algo.ttl_cache import TTLCache
from branch_guard.config_loader import get_settings
from branch_guard.git_providers.github_client import GitHubAPIError, GitHubClient
from branch_guard.log import get_logger

_token_cache: TTLCache[str] = TTLCache(
    get_settings().get("cache", {}).get("installation_token_ttl_seconds", 3000)
)


def create_app_jwt(app_id: str, private_key: str) -> str:
    """Sign the short-lived JWT that identifies the GitHub App itself."""
    now = int(time.time())
    payload = {
        "iat": now - 60,
        "exp": now + (10 * 60),
        "iss": str(app_id),
    }
    return jwt.encode(payload, private_key, algorithm="RS256")


async def get_installation_token(installation_id: int, http_client: Optional[httpx.AsyncClient] = None) -> str:
    """
    Exchange the app private key and an installation id for an access token.

    Tokens are cached per installation for slightly less than their lifetime.
    """
    cache_key = str(installation_id)
    cached = _token_cache.get(cache_key)
    if cached:
        return cached

    github_settings = get_settings().get("github", {})
    app_jwt = create_app_jwt(github_settings.get("app_id"), github_settings.get("private_key"))
    url = f"{github_settings.get('base_url', 'https://api.github.com').rstrip('/')}/app/installations/{installation_id}/access_tokens"
    headers = {
        "Authorization": f"Bearer {app_jwt}",
        "Accept": "application/vnd.github+json",
    }

    if http_client is not None:
        response = await http_client.post(url, headers=headers)
    else:
        async with httpx.AsyncClient() as client:
            response = await client.post(url, headers=headers)

    if response.status_code >= 400:
        raise GitHubAPIError(response.status_code, response.text, dict(response.headers))

    token = response.json()["token"]
    _token_cache.set(cache_key, token)
    get_logger().debug(f"Fetched access token for installation {installation_id}")
    return token


async def get_client_for_installation(installation_id: Optional[int]) -> GitHubClient:
    """
    Build a client authenticated for an installation.

    Falls back to the configured ``github.user_token`` when the event carries
    no installation id.
    """
    if installation_id:
        return GitHubClient(token=await get_installation_token(installation_id))
    return GitHubClient(token=get_settings().get("github", {}).get("user_token") or None)


def clear_token_cache() -> None:
    _token_cache.clear()
