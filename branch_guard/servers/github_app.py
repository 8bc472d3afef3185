# AGPL-3.0 License

"""
GitHub App webhook server.
"""

import hashlib
import hmac
import json

import uvicorn
from fastapi import APIRouter, BackgroundTasks, FastAPI, HTTPException, Request

from branch_guard import __version__
from branch_guard.config_loader import get_settings
from branch_guard.git_providers.github_auth import get_client_for_installation
from branch_guard.log import LoggingFormat, get_logger, setup_logger
from branch_guard.servers.event_handlers import EVENT_HANDLERS, handle_event
from branch_guard.tools.pr_checks import PRChecks

setup_logger(
    level=get_settings().get("config", {}).get("log_level", "INFO"),
    fmt=LoggingFormat(get_settings().get("config", {}).get("log_format", "CONSOLE").upper()),
)
router = APIRouter()


def verify_signature(payload_body: bytes, secret_token: str, signature_header: str) -> bool:
    """
    Verify that the payload was sent from GitHub by validating the SHA256 signature.

    Args:
        payload_body: raw request body bytes
        secret_token: the webhook secret
        signature_header: the X-Hub-Signature-256 header value

    Returns:
        True if the signature is valid, False otherwise.
    """
    if not signature_header:
        return False

    hash_object = hmac.new(secret_token.encode("utf-8"), msg=payload_body, digestmod=hashlib.sha256)
    expected_signature = "sha256=" + hash_object.hexdigest()
    return hmac.compare_digest(expected_signature, signature_header)


async def process_event(event: str, payload: dict) -> None:
    """Run one webhook event to completion with an installation-scoped client."""
    installation_id = (payload.get("installation") or {}).get("id")
    try:
        async with await get_client_for_installation(installation_id) as client:
            await handle_event(event, payload, PRChecks(client))
    except Exception as e:
        get_logger().opt(exception=e).error(f"Failed to handle {event} event: {e}")


@router.post("/api/v1/github_webhooks")
async def handle_github_webhooks(background_tasks: BackgroundTasks, request: Request):
    """
    Receives and processes incoming GitHub webhook requests.

    Verifies the payload signature when a webhook secret is configured,
    then processes the event in the background and answers immediately.
    """
    body = await request.body()
    secret = get_settings().get("github", {}).get("webhook_secret")
    if secret and not verify_signature(body, secret, request.headers.get("x-hub-signature-256", "")):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    event = request.headers.get("x-github-event", "")
    delivery = request.headers.get("x-github-delivery", "")
    if event in EVENT_HANDLERS:
        get_logger().info(f"Received {event}.{payload.get('action', '')} delivery {delivery}")
        background_tasks.add_task(process_event, event, payload)
    return {}


@router.get("/healthz")
async def healthz():
    return {"status": "ok", "version": __version__}


app = FastAPI(title="Branch Guard", version=__version__)
app.include_router(router)


def start():
    server_settings = get_settings().get("server", {})
    uvicorn.run(app, host=server_settings.get("host", "0.0.0.0"), port=int(server_settings.get("port", 3000)))


if __name__ == "__main__":
    start()
