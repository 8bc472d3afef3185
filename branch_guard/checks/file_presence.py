# AGPL-3.0 License

"""
file_presence: every matching file on the base branch must still exist on the PR head.
"""

import asyncio

from branch_guard.algo.allowlist_parser import get_allowed_files_for_rule
from branch_guard.checks.base_check import BaseCheck
from branch_guard.checks.check_context import CheckContext
from branch_guard.checks.check_result import CheckResult
from branch_guard.git_providers.github_trees import get_filtered_tree


class FilePresenceCheck(BaseCheck):
    """
    Fails when files matching the rule's paths exist at the base commit but
    not at the head commit.

    Deletions can be approved per file through an allowlist block in the PR
    description. Allowed deletions never fail the check but are always
    listed in the output so they stay auditable.
    """

    check_type = "file_presence"

    async def run(self, context: CheckContext) -> CheckResult:
        rule = context.rule
        pr = context.pr
        include = rule.on.paths.include
        exclude = rule.on.paths.exclude

        base_files, head_files = await asyncio.gather(
            get_filtered_tree(context.client, context.owner, context.repo, pr.base_sha, include, exclude),
            get_filtered_tree(context.client, context.owner, context.repo, pr.head_sha, include, exclude),
        )
        self.logger.debug(f"Comparing trees for {rule.name}: base={len(base_files)} head={len(head_files)}")

        head_set = set(head_files)
        missing = [f for f in base_files if f not in head_set]

        if not missing:
            return CheckResult(
                conclusion="success",
                title="All files in sync",
                summary=f"All {len(base_files)} matching file(s) from {pr.base_branch} are present on this branch.",
            )

        allowed_reasons = {
            entry.file_path: entry.reason
            for entry in get_allowed_files_for_rule(pr.body, rule.name)
        }
        allowed = [f for f in missing if f in allowed_reasons]
        blocking = [f for f in missing if f not in allowed_reasons]
        allowed_section = self._format_allowed(allowed, allowed_reasons)

        if not blocking:
            return CheckResult(
                conclusion="success",
                title=f"All files in sync ({len(allowed)} allowed deletion(s))",
                summary=(
                    f"All matching files from {pr.base_branch} are present except deletions "
                    f"allowed in the PR description."
                ),
                details=allowed_section,
            )

        missing_list = "\n".join(f"- {f}" for f in blocking)
        details = f"**Missing:**\n{missing_list}\n\nRebase on {pr.base_branch} and resolve the missing files."
        if allowed_section:
            details = f"{details}\n\n{allowed_section}"

        return CheckResult(
            conclusion="failure",
            title=f"Missing {len(blocking)} file(s) from {pr.base_branch}",
            summary=f"This branch is missing files that exist on {pr.base_branch}.",
            details=details,
        )

    @staticmethod
    def _format_allowed(allowed: list[str], reasons: dict[str, str]) -> str:
        if not allowed:
            return ""
        lines = []
        for file_path in allowed:
            reason = reasons.get(file_path)
            lines.append(f"- {file_path} ({reason})" if reason else f"- {file_path}")
        return "**Allowed deletions:**\n" + "\n".join(lines)
