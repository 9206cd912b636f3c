from fastapi import APIRouter, Depends, HTTPException
import logging

from keysdepot.dependencies import get_vault_service
from keysdepot.domain.depot.service import VaultService
from keysdepot.errors import StorageError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health/live")
def liveness():
    """Liveness probe: Service is running."""
    return {"status": "ok", "checks": {"api": "ok"}}


@router.get("/health/ready")
def readiness(service: VaultService = Depends(get_vault_service)):
    """Readiness probe: key store reachable."""
    health = {"status": "ok", "checks": {}}

    try:
        service.ping()
        health["checks"]["store"] = "ok"
    except StorageError as e:
        logger.error(f"Health check failed (store): {e}")
        health["checks"]["store"] = "failed"
        health["status"] = "failed"

    if health["status"] == "failed":
        raise HTTPException(status_code=503, detail=health)

    return health
