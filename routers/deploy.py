# deploy.py is a FastAPI router that handles manual deployment requests.

from fastapi import APIRouter, Depends, HTTPException, status
from dependencies import (
    acquire_workspace,
    build_settings,
    check_repository,
    get_deploy_api_key,
    get_service_config,
    workspace_lock,
)
from models.deploy_request import DeployRequest
from action_status import ActionStatus
from config import ConfigError
from deploy_pipeline import deploy
import logging
import traceback
from fastapi.responses import JSONResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/deploy", summary="Manual Deployment Endpoint")
def manual_deploy(
        deploy_request: DeployRequest,
        api_key: str = Depends(get_deploy_api_key),
        service_config: dict = Depends(get_service_config),
):
    logger.info(
        f"Manual deployment triggered for repository: {deploy_request.repository}, ref: {deploy_request.ref}"
    )
    check_repository(service_config, deploy_request.repository)

    try:
        settings = build_settings(
            service_config,
            repository=deploy_request.repository,
            ref=deploy_request.ref,
            sha=deploy_request.sha,
            actor=deploy_request.actor,
            deploy_branch=deploy_request.deploy_branch,
        )
    except ConfigError as e:
        logger.error(f"Manual deployment misconfigured: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    acquire_workspace()
    action_status = ActionStatus()
    try:
        outcome = deploy(settings, action_status)
        outcome.settle()
    except Exception as e:
        error_trace = traceback.format_exc()
        logger.error(f"Manual deployment failed: {str(e)}\n{error_trace}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": f"Manual deployment failed: {str(e)}"}
        )
    finally:
        workspace_lock.release()

    if not outcome.deployed:
        return {"message": "Nothing to deploy.", "failures": action_status.failures}

    logger.info("Manual deployment successful")
    return {
        "message": "Manual deployment successful",
        "repo": outcome.repo,
        "failures": action_status.failures,
    }
