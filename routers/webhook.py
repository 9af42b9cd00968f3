import asyncio
import logging
import traceback
import json
from urllib.parse import parse_qs
from fastapi import APIRouter, Depends, Request, Header, HTTPException, status
from action_status import ActionStatus
from config import ConfigError
from dependencies import (
    acquire_workspace,
    build_settings,
    check_repository,
    get_service_config,
    get_webhook_secret,
    workspace_lock,
)
from deploy_pipeline import deploy, is_self_triggered
from models.github_webhook import GitHubWebhook
from utils import verify_signature

router = APIRouter()
logger = logging.getLogger(__name__)

# Background deploys keyed by repository full name
running_tasks = {}


def _deploy_and_settle(settings):
    outcome = deploy(settings, ActionStatus())
    outcome.settle()
    return outcome


async def run_deploy(settings):
    """
    Runs the blocking deploy in an executor to avoid blocking the event loop.
    The workspace lock taken by the request handler is released here.
    """
    loop = asyncio.get_running_loop()
    repo = settings.context.repository
    try:
        outcome = await loop.run_in_executor(None, _deploy_and_settle, settings)
        logger.info(f"Deployment completed for {repo} (deployed: {outcome.deployed}).")
    except Exception as e:
        error_trace = traceback.format_exc()
        logger.error(f"Deployment failed for {repo}: {str(e)}\n{error_trace}")
    finally:
        workspace_lock.release()
        running_tasks.pop(repo, None)


@router.post("/webhook", summary="GitHub Push Webhook Endpoint")
async def handle_webhook(
        request: Request,
        x_hub_signature_256: str = Header(None),
        x_github_event: str = Header(None),
        service_config: dict = Depends(get_service_config),
        secret: str = Depends(get_webhook_secret),
):
    logger.info("Webhook endpoint was called.")
    body_bytes = await request.body()

    # 1. Verify signature. Unsigned requests are never accepted.
    if not x_hub_signature_256:
        logger.error("Missing X-Hub-Signature-256 header.")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing signature header"
        )
    if not verify_signature(body_bytes, x_hub_signature_256, secret):
        logger.warning("Invalid signature.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid signature"
        )

    # 2. Parse payload.
    content_type = request.headers.get("Content-Type", "")
    try:
        if "application/json" in content_type:
            payload = json.loads(body_bytes)
        elif "application/x-www-form-urlencoded" in content_type:
            form_data = parse_qs(body_bytes.decode("utf-8"))
            if "payload" not in form_data:
                raise ValueError("No payload parameter in form data")
            payload = json.loads(form_data["payload"][0])
        else:
            raise ValueError(f"Unsupported Content-Type: {content_type}")
        if not isinstance(payload, dict):
            raise ValueError("Payload must be a JSON object")
    except ValueError as e:
        logger.error(f"Could not decode JSON payload: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )

    # 3. Handle ping events.
    if x_github_event == "ping" or "zen" in payload:
        logger.info("Received ping event from GitHub.")
        return {"message": "Ping successful.", "zen": payload.get("zen")}

    # 4. Validate payload using the pydantic model.
    try:
        webhook = GitHubWebhook(**payload)
    except Exception as e:
        logger.error(f"Invalid payload: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload"
        )

    repo_full_name = webhook.repository.get("full_name", "")
    actor = webhook.sender.get("login", "") or (webhook.repository.get("owner") or {}).get("login", "")
    logger.info(f"Received push for repo: {repo_full_name}, ref: {webhook.ref}")
    check_repository(service_config, repo_full_name)

    try:
        settings = build_settings(service_config, repo_full_name, webhook.ref, webhook.after, actor)
    except ConfigError as e:
        logger.error(f"Deployment misconfigured: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    # 5. Pushes produced by our own deploy must not deploy again.
    if is_self_triggered(settings):
        logger.info(f"Triggered by branch used to deploy: {webhook.ref}.")
        return {"message": "Nothing to deploy."}

    # 6. Start the deploy as a background task and respond immediately.
    acquire_workspace()
    task = asyncio.create_task(run_deploy(settings))
    running_tasks[repo_full_name] = task

    return {"message": f"Deployment started for {repo_full_name} from {webhook.ref}."}
