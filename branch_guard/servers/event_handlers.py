# AGPL-3.0 License

"""
GitHub webhook event handlers.

Each handler receives the parsed payload and a PRChecks tool bound to an
installation-scoped client. Handlers ignore actions they do not act on.
"""

from typing import Awaitable, Callable

from branch_guard.config_loader import get_settings
from branch_guard.git_providers.check_runs import is_own_check_run, post_config_error
from branch_guard.git_providers.github_client import GitHubAPIError
from branch_guard.log import get_logger
from branch_guard.tools.pr_checks import PRChecks

PULL_REQUEST_ACTIONS = ("opened", "synchronize", "reopened", "edited")

EventHandler = Callable[[dict, PRChecks], Awaitable[None]]


def _repository(payload: dict) -> tuple[str, str]:
    repository = payload["repository"]
    owner = repository["owner"]
    return owner.get("login") or owner.get("name"), repository["name"]


def _recheck_commands() -> list[str]:
    commands = get_settings().get("branch_guard", {}).get("recheck_commands", ["/recheck"])
    return [c.strip().lower() for c in commands]


def extract_pushed_files(payload: dict) -> list[str]:
    """Unique added, modified and removed paths across the pushed commits, in first-seen order."""
    files = {}
    for commit in payload.get("commits") or []:
        for key in ("added", "modified", "removed"):
            for path in commit.get(key) or []:
                files[path] = None
    return list(files)


async def handle_pull_request(payload: dict, pr_checks: PRChecks) -> None:
    action = payload.get("action")
    if action not in PULL_REQUEST_ACTIONS:
        return
    if action == "edited" and not (payload.get("changes") or {}).get("base"):
        get_logger().debug("PR edited but base branch unchanged, skipping")
        return

    owner, repo = _repository(payload)
    pr = payload["pull_request"]
    get_logger().info(f"Processing pull_request.{action} for {owner}/{repo}#{pr['number']}")
    await pr_checks.evaluate_pull_request(owner, repo, pr)


async def handle_push(payload: dict, pr_checks: PRChecks) -> None:
    ref = payload.get("ref", "")
    if not ref.startswith("refs/heads/"):
        return

    owner, repo = _repository(payload)
    branch = ref[len("refs/heads/"):]
    get_logger().info(f"Processing push to {owner}/{repo}@{branch}")
    await pr_checks.reevaluate_branch(owner, repo, branch, extract_pushed_files(payload))


async def handle_check_suite(payload: dict, pr_checks: PRChecks) -> None:
    if payload.get("action") != "rerequested":
        return

    owner, repo = _repository(payload)
    pull_requests = payload["check_suite"].get("pull_requests") or []
    if not pull_requests:
        get_logger().debug("No PRs associated with this check suite, skipping")
        return

    logger = get_logger()
    logger.info(f"Re-running checks for {len(pull_requests)} PR(s) in {owner}/{repo}")
    config_result = await pr_checks.load_config(owner, repo)
    if config_result.status == "missing":
        return

    if config_result.status == "invalid":
        for pr in pull_requests:
            await post_config_error(
                pr_checks.client, owner, repo, pr["head"]["sha"], config_result.errors, pr_checks.config_path
            )
        return

    for pr in pull_requests:
        try:
            await pr_checks.evaluate_pull_request_number(owner, repo, pr["number"], config_result)
        except Exception as e:
            logger.error(f"Failed to evaluate {owner}/{repo}#{pr['number']}: {e}")


async def handle_check_run(payload: dict, pr_checks: PRChecks) -> None:
    if payload.get("action") != "completed":
        return

    check_run = payload["check_run"]
    if is_own_check_run(check_run["name"]):
        return

    owner, repo = _repository(payload)
    await pr_checks.resolve_pending(owner, repo, check_run["head_sha"], check_run["name"])


async def handle_issue_comment(payload: dict, pr_checks: PRChecks) -> None:
    if payload.get("action") != "created" or not payload["issue"].get("pull_request"):
        return

    body = (payload["comment"].get("body") or "").strip().lower()
    if body not in _recheck_commands():
        return

    owner, repo = _repository(payload)
    number = payload["issue"]["number"]
    logger = get_logger()
    logger.info(f"Processing recheck command on {owner}/{repo}#{number}")

    comment_id = payload["comment"]["id"]
    try:
        await pr_checks.client.delete_issue_comment(owner, repo, comment_id)
    except GitHubAPIError as e:
        logger.warning(f"Failed to delete recheck comment {comment_id}, continuing: {e}")

    await pr_checks.evaluate_pull_request_number(owner, repo, number)


async def handle_installation(payload: dict, pr_checks: PRChecks) -> None:
    action = payload.get("action")
    if action == "created":
        repositories = payload.get("repositories") or []
    elif action == "added":
        repositories = payload.get("repositories_added") or []
    else:
        return

    owner = payload["installation"]["account"]["login"]
    logger = get_logger()
    logger.info(f"Processing installation {action} for {owner}: {len(repositories)} repo(s)")

    for repository in repositories:
        try:
            await pr_checks.backfill_repository(owner, repository["name"])
        except Exception as e:
            logger.error(f"Failed to process {owner}/{repository['name']} during installation, continuing: {e}")


EVENT_HANDLERS: dict[str, EventHandler] = {
    "pull_request": handle_pull_request,
    "push": handle_push,
    "check_suite": handle_check_suite,
    "check_run": handle_check_run,
    "issue_comment": handle_issue_comment,
    "installation": handle_installation,
    "installation_repositories": handle_installation,
}


async def handle_event(event: str, payload: dict, pr_checks: PRChecks) -> None:
    handler = EVENT_HANDLERS.get(event)
    if handler is None:
        get_logger().debug(f"Ignoring unsupported event {event}")
        return
    await handler(payload, pr_checks)
