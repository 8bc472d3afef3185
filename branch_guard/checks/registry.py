# AGPL-3.0 License

"""
Lookup of check implementations by ``check_type``.
"""

from branch_guard.checks.approval_gate import ApprovalGateCheck
from branch_guard.checks.base_check import BaseCheck
from branch_guard.checks.branch_age import BranchAgeCheck
from branch_guard.checks.external_status import ExternalStatusCheck
from branch_guard.checks.file_pair import FilePairCheck
from branch_guard.checks.file_presence import FilePresenceCheck


class UnknownCheckTypeError(KeyError):
    pass


class CheckRegistry:
    """Maps check type names to check instances. Lookups are exact."""

    def __init__(self):
        self._checks: dict[str, BaseCheck] = {}

    def register(self, check: BaseCheck) -> None:
        self._checks[check.check_type] = check

    def get(self, check_type: str) -> BaseCheck:
        try:
            return self._checks[check_type]
        except KeyError:
            raise UnknownCheckTypeError(f"Unknown check type: {check_type}") from None

    def check_types(self) -> list[str]:
        return list(self._checks)


def default_registry() -> CheckRegistry:
    """Registry with the five built-in check types."""
    registry = CheckRegistry()
    for check in (
        FilePresenceCheck(),
        FilePairCheck(),
        ExternalStatusCheck(),
        BranchAgeCheck(),
        ApprovalGateCheck(),
    ):
        registry.register(check)
    return registry
