# AGPL-3.0 License

"""
Unit tests for loading and validating the rule configuration.
"""

import pytest

from branch_guard.git_providers.github_client import GitHubAPIError
from branch_guard.rules.rule_loader import load_rule_config, parse_rule_config
from branch_guard.rules.rule_models import ExternalStatusRule, FilePairRule

VALID_CONFIG = """
rules:
  - name: lockfile
    description: Lockfile must change with package.json
    check_type: file_pair
    on:
      branches: [main]
      paths:
        include: [package.json]
    config:
      companion: package-lock.json
  - name: ci
    description: CI must pass
    check_type: external_status
    on:
      branches: [main, release]
      paths:
        include: ["src/**"]
        exclude: ["src/**/*.md"]
    config:
      required_checks: [lint]
    failure_message:
      title: CI is red
    notify: false
"""


def rule_yaml(name="rule", check_type="branch_age", config="max_age_days: 14"):
    return f"""
  - name: {name}
    description: test
    check_type: {check_type}
    on:
      branches: [main]
      paths:
        include: ["**"]
    config:
      {config}
"""


class TestParseRuleConfig:
    """Tests for parse_rule_config."""

    def test_valid_config(self):
        result = parse_rule_config(VALID_CONFIG)

        assert result.status == "loaded"
        lockfile, ci = result.config.rules
        assert isinstance(lockfile, FilePairRule)
        assert lockfile.config.companions == ["package-lock.json"]
        assert lockfile.notify is True
        assert isinstance(ci, ExternalStatusRule)
        assert ci.config.timeout_minutes == 30
        assert ci.failure_message.title == "CI is red"
        assert ci.notify is False

    def test_invalid_yaml(self):
        result = parse_rule_config("rules: [unclosed")

        assert result.status == "invalid"
        assert result.errors == ["Invalid YAML syntax in branch-guard.yml"]

    def test_empty_document(self):
        result = parse_rule_config("")

        assert result.status == "invalid"
        assert result.errors

    def test_too_many_rules(self):
        content = "rules:" + "".join(rule_yaml(name=f"rule-{i}") for i in range(21))

        result = parse_rule_config(content)

        assert result.status == "invalid"
        assert any(e.startswith("rules:") for e in result.errors)

    def test_duplicate_names(self):
        content = "rules:" + rule_yaml(name="same") + rule_yaml(name="same")

        result = parse_rule_config(content)

        assert result.status == "invalid"
        assert any("Duplicate rule name: same" in e for e in result.errors)

    def test_invalid_rule_name(self):
        result = parse_rule_config("rules:" + rule_yaml(name="Not_Valid"))

        assert result.status == "invalid"
        assert any("name" in e for e in result.errors)

    def test_unknown_check_type(self):
        result = parse_rule_config("rules:" + rule_yaml(check_type="file_size"))

        assert result.status == "invalid"

    def test_config_must_match_check_type(self):
        result = parse_rule_config("rules:" + rule_yaml(check_type="file_pair", config="max_age_days: 14"))

        assert result.status == "invalid"
        assert any("companion" in e for e in result.errors)

    def test_approval_gate_needs_approvers(self):
        result = parse_rule_config("rules:" + rule_yaml(check_type="approval_gate", config="mode: all"))

        assert result.status == "invalid"
        assert any("required_teams or required_users" in e for e in result.errors)

    def test_all_errors_reported(self):
        content = "rules:" + rule_yaml(name="a", config="max_age_days: 0") + rule_yaml(name="B")

        result = parse_rule_config(content)

        assert len(result.errors) >= 2


@pytest.mark.asyncio
class TestLoadRuleConfig:
    """Tests for load_rule_config."""

    async def test_missing_file(self, client):
        result = await load_rule_config(client, "acme", "widgets")

        assert result.status == "missing"

    async def test_loaded_and_cached(self, client):
        client.contents[".github/branch-guard.yml"] = VALID_CONFIG

        first = await load_rule_config(client, "acme", "widgets")
        second = await load_rule_config(client, "acme", "widgets")

        assert first.status == "loaded"
        assert second is first
        assert client.calls.count("get_content") == 1

    async def test_other_errors_propagate(self, client):
        client.fail_on["get_content"] = GitHubAPIError(500, "Server Error")

        with pytest.raises(GitHubAPIError):
            await load_rule_config(client, "acme", "widgets")
