# AGPL-3.0 License

"""
Check run bookkeeping: one externally visible check run per rule.

Check names are ``branch-guard/<rule-name>`` so they can be marked as
required in branch protection before a rule has ever fired.
"""

from typing import Literal, Optional

from branch_guard.git_providers.github_client import GitHubClient

CHECK_NAME_PREFIX = "branch-guard"
CONFIG_CHECK_NAME = f"{CHECK_NAME_PREFIX}/config"

CheckRunStatus = Literal["queued", "in_progress", "completed"]
CheckRunConclusion = Literal["success", "failure", "neutral"]


def check_run_name(rule_name: str) -> str:
    return f"{CHECK_NAME_PREFIX}/{rule_name}"


def is_own_check_run(name: str) -> bool:
    return name.startswith(f"{CHECK_NAME_PREFIX}/")


def _build_payload(
    status: Optional[CheckRunStatus],
    conclusion: Optional[CheckRunConclusion],
    output: Optional[dict],
) -> dict:
    payload = {}
    if status:
        payload["status"] = status
    if status == "completed" and conclusion:
        payload["conclusion"] = conclusion
    if output:
        payload["output"] = {k: v for k, v in output.items() if v is not None}
    return payload


async def find_check_run(client: GitHubClient, owner: str, repo: str, head_sha: str, name: str) -> Optional[dict]:
    """Most recent check run called ``name`` on ``head_sha``, or None."""
    runs = await client.list_check_runs(owner, repo, head_sha, check_name=name)
    return runs[0] if runs else None


async def create_check_run(
    client: GitHubClient,
    owner: str,
    repo: str,
    head_sha: str,
    name: str,
    status: CheckRunStatus,
    conclusion: Optional[CheckRunConclusion] = None,
    output: Optional[dict] = None,
) -> int:
    payload = {"name": name, "head_sha": head_sha, **_build_payload(status, conclusion, output)}
    data = await client.create_check_run(owner, repo, payload)
    return data["id"]


async def update_check_run(
    client: GitHubClient,
    owner: str,
    repo: str,
    check_run_id: int,
    status: Optional[CheckRunStatus] = None,
    conclusion: Optional[CheckRunConclusion] = None,
    output: Optional[dict] = None,
) -> None:
    await client.update_check_run(owner, repo, check_run_id, _build_payload(status, conclusion, output))


async def upsert_completed_check_run(
    client: GitHubClient,
    owner: str,
    repo: str,
    head_sha: str,
    name: str,
    conclusion: CheckRunConclusion,
    output: dict,
) -> int:
    """Complete the existing check run called ``name``, or create it completed."""
    existing = await find_check_run(client, owner, repo, head_sha, name)
    if existing:
        await update_check_run(client, owner, repo, existing["id"], "completed", conclusion, output)
        return existing["id"]
    return await create_check_run(client, owner, repo, head_sha, name, "completed", conclusion, output)


async def post_config_error(
    client: GitHubClient,
    owner: str,
    repo: str,
    head_sha: str,
    errors: list[str],
    config_path: str = ".github/branch-guard.yml",
) -> None:
    """Report an invalid configuration as a single failing ``branch-guard/config`` check."""
    error_list = "\n".join(f"- {e}" for e in errors)
    await upsert_completed_check_run(
        client, owner, repo, head_sha, CONFIG_CHECK_NAME, "failure",
        {
            "title": "Invalid configuration",
            "summary": f"`{config_path}` contains validation errors:\n\n{error_list}",
        },
    )


async def clear_config_error(client: GitHubClient, owner: str, repo: str, head_sha: str) -> None:
    """Turn a previously failing config check green once the config loads again."""
    existing = await find_check_run(client, owner, repo, head_sha, CONFIG_CHECK_NAME)
    if existing and existing.get("conclusion") == "failure":
        await update_check_run(
            client, owner, repo, existing["id"], "completed", "success",
            {"title": "Configuration valid", "summary": "The configuration file loaded successfully."},
        )
