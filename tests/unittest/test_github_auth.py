# AGPL-3.0 License

"""
Unit tests for GitHub App authentication.
"""

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from branch_guard.git_providers import github_auth
from branch_guard.git_providers.github_client import GitHubAPIError


@pytest.fixture(scope="module")
def private_key_pem():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def app_settings(monkeypatch, private_key_pem):
    settings = {"github": {"app_id": "12345", "private_key": private_key_pem, "base_url": "https://api.example.test"}}
    monkeypatch.setattr(github_auth, "get_settings", lambda: settings)
    return settings


class TestCreateAppJwt:
    def test_signed_claims(self, private_key_pem):
        token = github_auth.create_app_jwt("12345", private_key_pem)

        claims = jwt.decode(token, options={"verify_signature": False})
        assert claims["iss"] == "12345"
        assert claims["exp"] - claims["iat"] == 660


@pytest.mark.asyncio
class TestInstallationToken:
    """Tests for get_installation_token."""

    async def test_fetches_and_caches_token(self, app_settings):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(201, json={"token": "ghs_abc"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            first = await github_auth.get_installation_token(42, http_client=http_client)
            second = await github_auth.get_installation_token(42, http_client=http_client)

        assert first == second == "ghs_abc"
        assert len(requests) == 1
        assert requests[0].url.path == "/app/installations/42/access_tokens"
        assert requests[0].headers["authorization"].startswith("Bearer ")

    async def test_error_raises(self, app_settings):
        def handler(request):
            return httpx.Response(401, text="Bad credentials")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            with pytest.raises(GitHubAPIError) as exc_info:
                await github_auth.get_installation_token(42, http_client=http_client)

        assert exc_info.value.status == 401
