# AGPL-3.0 License

"""
Rule configuration: schema and loading of ``.github/branch-guard.yml``.
"""

from branch_guard.rules.rule_models import (
    ApprovalGateRule,
    BranchAgeRule,
    ExternalStatusRule,
    FailureMessage,
    FilePairRule,
    FilePresenceRule,
    Rule,
    RuleConfig,
)
from branch_guard.rules.rule_loader import ConfigLoadResult, load_rule_config, parse_rule_config

__all__ = [
    "ApprovalGateRule",
    "BranchAgeRule",
    "ExternalStatusRule",
    "FailureMessage",
    "FilePairRule",
    "FilePresenceRule",
    "Rule",
    "RuleConfig",
    "ConfigLoadResult",
    "load_rule_config",
    "parse_rule_config",
]
