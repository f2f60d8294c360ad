"""
Health check endpoint.
Verifies the configured bucket is reachable.
"""
from fastapi import APIRouter, Depends, HTTPException

from app.storage.gateway import StorageGateway, get_storage_gateway

router = APIRouter()


@router.get("")
async def health_check(gateway: StorageGateway = Depends(get_storage_gateway)):
    """
    Health check endpoint.
    Returns status of the storage bucket.
    """
    health_status = {
        "status": "healthy",
        "bucket": gateway.bucket,
        "storage": "connected"
    }

    if not await gateway.check_bucket():
        health_status["storage"] = "unreachable"
        health_status["status"] = "unhealthy"
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
