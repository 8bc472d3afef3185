# AGPL-3.0 License

"""
file_pair: files that must change together.
"""

from branch_guard.checks.base_check import BaseCheck
from branch_guard.checks.check_context import CheckContext
from branch_guard.checks.check_result import CheckResult


class FilePairCheck(BaseCheck):
    """
    Ensure companion files are modified alongside the rule's trigger paths.

    Example: if package.json changes, package-lock.json should also change.
    In ``any`` mode one changed companion is enough; ``all`` requires every
    companion to be part of the PR.
    """

    check_type = "file_pair"

    async def run(self, context: CheckContext) -> CheckResult:
        rule = context.rule
        companions = rule.config.companions
        changed_files = set(context.pr.changed_files)

        changed = [c for c in companions if c in changed_files]
        missing = [c for c in companions if c not in changed_files]

        if rule.config.mode == "all":
            passed = not missing
        else:
            passed = bool(changed)

        if passed:
            return CheckResult(
                conclusion="success",
                title="Companion file(s) updated",
                summary=f"Required companion file(s) were updated: {', '.join(changed)}",
            )

        missing_list = "\n".join(f"- {c}" for c in missing)
        trigger_patterns = ", ".join(rule.on.paths.include)
        return CheckResult(
            conclusion="failure",
            title="Missing companion file update",
            summary=(
                f"Changes matching `{trigger_patterns}` require the following companion "
                f"file(s) to also be updated:\n\n{missing_list}"
            ),
        )
