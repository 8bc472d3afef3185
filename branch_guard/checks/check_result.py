# AGPL-3.0 License
# Copyright (c) Qodo Ltd.

"""
Check result data structures.
"""

from dataclasses import dataclass
from typing import Literal, Optional

WAITING_TITLE_PREFIX = "Waiting for:"


@dataclass
class CheckResult:
    """
    Result of executing one rule's check.

    Attributes:
        conclusion: "success" or "failure"
        title: One-line headline shown on the check run
        summary: Markdown summary
        details: Optional long-form Markdown (check run ``text``)
    """
    conclusion: Literal["success", "failure"]
    title: str
    summary: str
    details: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.conclusion == "success"

    @property
    def is_waiting(self) -> bool:
        """True for an external_status result that is still waiting on other checks."""
        return self.title.startswith(WAITING_TITLE_PREFIX)

    def to_output(self) -> dict:
        """Check run ``output`` payload."""
        return {
            "title": self.title,
            "summary": self.summary,
            "text": self.details,
        }

    def __str__(self) -> str:
        status = "✓ PASSED" if self.passed else "✗ FAILED"
        return f"{status}: {self.title}"
