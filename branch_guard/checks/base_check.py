# AGPL-3.0 License

"""
Base class for all rule checks.
"""

from abc import ABC, abstractmethod
from typing import ClassVar

from branch_guard.checks.check_context import CheckContext
from branch_guard.checks.check_result import CheckResult
from branch_guard.log import get_logger


class BaseCheck(ABC):
    """
    Abstract base class for the check types a rule can select.

    Subclasses set ``check_type`` to the tag used in the configuration
    document and implement ``run``.
    """

    check_type: ClassVar[str]

    def __init__(self):
        self.logger = get_logger()

    @abstractmethod
    async def run(self, context: CheckContext) -> CheckResult:
        """
        Execute the check and return results.

        Args:
            context: Check context with PR information

        Returns:
            CheckResult indicating pass/fail and details
        """
        pass
