# AGPL-3.0 License

"""
Loading and validation of the repository's rule configuration file.
"""

import base64
import re
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

import yaml
from pydantic import ValidationError

from branch_guard.algo.ttl_cache import TTLCache
from branch_guard.config_loader import get_settings
from branch_guard.git_providers.github_client import GitHubAPIError, GitHubClient
from branch_guard.log import get_logger
from branch_guard.rules.rule_models import RuleConfig

_config_cache: TTLCache["ConfigLoadResult"] = TTLCache(get_settings().get("cache", {}).get("ttl_seconds", 60))


class _RuleConfigLoader(yaml.SafeLoader):
    """SafeLoader with YAML 1.2 booleans, so the ``on:`` key of a rule stays a string."""


_RuleConfigLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:bool"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_RuleConfigLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


@dataclass
class ConfigLoadResult:
    """
    Outcome of loading the configuration document.

    Attributes:
        status: "loaded", "missing" or "invalid"
        config: Validated configuration when loaded
        errors: Every validation error when invalid
    """
    status: Literal["loaded", "missing", "invalid"]
    config: Optional[RuleConfig] = None
    errors: list[str] = field(default_factory=list)

    @classmethod
    def loaded(cls, config: RuleConfig) -> "ConfigLoadResult":
        return cls(status="loaded", config=config)

    @classmethod
    def missing(cls) -> "ConfigLoadResult":
        return cls(status="missing")

    @classmethod
    def invalid(cls, errors: list[str]) -> "ConfigLoadResult":
        return cls(status="invalid", errors=errors)


def _format_error(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg', '')}" if location else error.get("msg", "")


def parse_rule_config(content: str) -> ConfigLoadResult:
    """
    Parse and validate the YAML text of a configuration file.

    Args:
        content: Raw YAML

    Returns:
        loaded or invalid result (never missing)
    """
    try:
        parsed: Any = yaml.load(content, Loader=_RuleConfigLoader)
    except yaml.YAMLError:
        return ConfigLoadResult.invalid(["Invalid YAML syntax in branch-guard.yml"])

    try:
        return ConfigLoadResult.loaded(RuleConfig.model_validate(parsed))
    except ValidationError as e:
        return ConfigLoadResult.invalid([_format_error(err) for err in e.errors()])


async def load_rule_config(
    client: GitHubClient,
    owner: str,
    repo: str,
    ref: Optional[str] = None,
) -> ConfigLoadResult:
    """
    Fetch and validate the configuration file of a repository.

    Results are cached for a short window per repository and ref so that
    fan-out over many pull requests reads the file once.

    Args:
        client: GitHub client
        owner: Repository owner
        repo: Repository name
        ref: Git ref to read from (default branch when None)

    Returns:
        ConfigLoadResult
    """
    cache_key = f"{owner}/{repo}:{ref or 'default'}"
    cached = _config_cache.get(cache_key)
    if cached is not None:
        return cached

    result = await _fetch_and_parse(client, owner, repo, ref)
    _config_cache.set(cache_key, result)
    return result


async def _fetch_and_parse(client: GitHubClient, owner: str, repo: str, ref: Optional[str]) -> ConfigLoadResult:
    config_path = get_settings().get("branch_guard", {}).get("config_path", ".github/branch-guard.yml")
    try:
        data = await client.get_content(owner, repo, config_path, ref)
    except GitHubAPIError as e:
        if e.status == 404:
            return ConfigLoadResult.missing()
        raise

    if not isinstance(data, dict) or data.get("type") != "file" or not data.get("content"):
        return ConfigLoadResult.missing()

    content = base64.b64decode(data["content"]).decode("utf-8")
    result = parse_rule_config(content)
    if result.status == "invalid":
        get_logger().warning(f"Invalid configuration in {owner}/{repo}: {len(result.errors)} error(s)")
    return result


def clear_config_cache() -> None:
    _config_cache.clear()
