# AGPL-3.0 License

"""
Parser for deletion allowlists embedded in pull request descriptions.

PR authors can permit specific file deletions per rule with a block like::

    <!-- branch-guard:allow
    rule-name: path/to/file.sql (reason for deletion)
    rule-name: path/to/other.sql
    -->
"""

import re
from dataclasses import dataclass
from typing import Optional

BLOCK_PATTERN = re.compile(r"<!--\s*branch-guard:allow\s*\n(.*?)-->", re.DOTALL)
LINE_PATTERN = re.compile(r"^([a-z0-9-]+):\s*(.+?)\s*(?:\((.+?)\))?\s*$")


@dataclass(frozen=True)
class AllowlistEntry:
    rule_name: str
    file_path: str
    reason: str = ""


def parse_allowlist(pr_body: Optional[str]) -> list[AllowlistEntry]:
    """
    Parse every ``branch-guard:allow`` block in a PR body.

    Entries from all blocks are accumulated in order. Lines that do not
    match ``rule-name: path (reason)`` are ignored.

    Args:
        pr_body: Pull request description, may be None

    Returns:
        List of allowlist entries
    """
    if not pr_body:
        return []

    entries = []
    for block in BLOCK_PATTERN.finditer(pr_body):
        for raw_line in block.group(1).splitlines():
            line = raw_line.strip()
            if not line:
                continue

            match = LINE_PATTERN.match(line)
            if not match:
                continue

            entries.append(AllowlistEntry(
                rule_name=match.group(1),
                file_path=match.group(2).strip(),
                reason=(match.group(3) or "").strip(),
            ))

    return entries


def get_allowed_files_for_rule(pr_body: Optional[str], rule_name: str) -> list[AllowlistEntry]:
    """Return the allowlist entries scoped to ``rule_name``."""
    return [entry for entry in parse_allowlist(pr_body) if entry.rule_name == rule_name]
