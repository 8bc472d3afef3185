# AGPL-3.0 License

"""
Rule check engine for Branch Guard.

This module provides the five check types a rule can use and the
orchestrator that evaluates a rule set against a pull request and reports
each rule as a check run.
"""

from branch_guard.checks.base_check import BaseCheck
from branch_guard.checks.check_context import CheckContext, PullRequestContext
from branch_guard.checks.check_result import CheckResult
from branch_guard.checks.file_presence import FilePresenceCheck
from branch_guard.checks.file_pair import FilePairCheck
from branch_guard.checks.external_status import ExternalStatusCheck
from branch_guard.checks.branch_age import BranchAgeCheck
from branch_guard.checks.approval_gate import ApprovalGateCheck
from branch_guard.checks.registry import CheckRegistry, UnknownCheckTypeError, default_registry
from branch_guard.checks.orchestrator import CheckOrchestrator, RuleOutcome

__all__ = [
    "BaseCheck",
    "CheckContext",
    "PullRequestContext",
    "CheckResult",
    "FilePresenceCheck",
    "FilePairCheck",
    "ExternalStatusCheck",
    "BranchAgeCheck",
    "ApprovalGateCheck",
    "CheckRegistry",
    "UnknownCheckTypeError",
    "default_registry",
    "CheckOrchestrator",
    "RuleOutcome",
]
