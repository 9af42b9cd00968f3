# dependencies.py

import os
import threading
import logging
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException, status, Depends

from config import ActionSettings, load_config, resolve_inputs
from models.github_context import GitHubContext

logger = logging.getLogger(__name__)

# One shared workspace, so one deploy at a time.
workspace_lock = threading.Lock()


@lru_cache()
def get_service_config() -> dict:
    return load_config(required=True)


def get_deploy_api_key(
        api_key: str = Header(..., alias="X-API-Key"),
        service_config: dict = Depends(get_service_config),
):
    expected = service_config.get("deploy_api_key", "")
    if not expected or api_key != expected:
        logger.warning("Invalid API Key for manual deployment.")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API Key")
    return api_key


def acquire_workspace():
    if not workspace_lock.acquire(blocking=False):
        logger.info("A deployment is already running. Rejecting the new trigger.")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A deployment is already running")


def check_repository(service_config: dict, repository: str):
    """Only the configured repository may trigger a deploy."""
    allowed = service_config.get("repository", "")
    if not allowed or repository != allowed:
        message = f"Repository '{repository}' not configured for deployment."
        logger.warning(message)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def get_webhook_secret(service_config: dict = Depends(get_service_config)) -> str:
    secret = service_config.get("github_webhook_secret", "")
    if not secret:
        logger.error("github_webhook_secret is not configured. Rejecting webhook.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook secret not configured"
        )
    return secret


def build_settings(
        service_config: dict,
        repository: str,
        ref: str,
        sha: str,
        actor: str,
        deploy_branch: Optional[str] = None,
) -> ActionSettings:
    """
    Settings for a service-triggered run: inputs come from the YAML config
    (environment INPUT_* variables still win), the context from the request.
    """
    inputs = resolve_inputs(os.environ, service_config)
    if deploy_branch:
        inputs = inputs.model_copy(update={"deploy_branch": deploy_branch})

    context = GitHubContext(
        ref=ref,
        sha=sha,
        actor=actor,
        repository=repository,
        server_url=service_config.get("server_url") or "https://github.com",
    )
    return ActionSettings(
        inputs=inputs,
        context=context,
        workspace=os.path.abspath(service_config.get("workspace", ".")),
    )
