# routers/health.py

from fastapi import APIRouter
import logging

from dependencies import workspace_lock

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", summary="Health Check Endpoint")
def health_check():
    logger.debug("Health check endpoint was called.")
    return {"status": "OK", "deploying": workspace_lock.locked()}
