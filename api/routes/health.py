"""
Health Check Routes

/health, /gpu-status, /stats endpoints
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.config import device

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    return {
        "status": "healthy",
        "device": str(device),
        "dispatcher_running": bool(dispatcher and dispatcher.is_running),
    }


@router.get("/gpu-status")
async def gpu_status(request: Request):
    """
    GPU pool status.

    Returns:
        {
            "total_gpus": int,
            "available_gpus": int,
            "gpus": {...}
        }
    """
    pool = getattr(request.app.state, "gpu_pool", None)
    if pool is None:
        return JSONResponse({"total_gpus": 0, "available_gpus": 0, "gpus": {}})
    return JSONResponse(pool.get_status())


@router.get("/stats")
async def stats(request: Request):
    """Processing statistics (per job type) and queue depth."""
    dispatcher = request.app.state.dispatcher
    snapshot = dispatcher.reporter.snapshot()
    snapshot["queued"] = dispatcher.queue_sizes()
    return JSONResponse(snapshot)
