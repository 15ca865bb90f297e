"""
Job Routes

/jobs, /jobs/{job_id}, /jobs/{job_id}/cancel endpoints
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import EnqueueJobRequest, EnqueueJobResponse, JobListResponse, JobResponse
from assetgen.errors import InvalidTransition, JobNotFound, ValidationError
from assetgen.jobs.models import JobStatus, JobType

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/jobs", status_code=202, response_model=EnqueueJobResponse)
async def enqueue_job(body: EnqueueJobRequest, request: Request):
    """
    Enqueue a pipeline job (non-blocking, returns job ID).

    Poll GET /jobs/{job_id} or register a webhook_url for the result.
    """
    dispatcher = request.app.state.dispatcher
    try:
        job_id = await dispatcher.enqueue(body.type, body.input, webhook_url=body.webhook_url)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    job = dispatcher.get_status(job_id)
    return EnqueueJobResponse(job_id=job_id, status=job.status.value)


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, request: Request):
    try:
        job = request.app.state.dispatcher.get_status(job_id)
    except JobNotFound as e:
        return JSONResponse(status_code=404, content={"error": str(e)})
    return job.to_dict()


@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(request: Request, status: Optional[str] = None, type: Optional[str] = None):
    try:
        status_filter = JobStatus(status) if status else None
        type_filter = JobType(type) if type else None
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    jobs = request.app.state.store.list(status=status_filter, job_type=type_filter)
    return {"jobs": [job.to_dict() for job in jobs], "total": len(jobs)}


@router.post("/jobs/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(job_id: str, request: Request):
    try:
        job = request.app.state.dispatcher.cancel(job_id)
    except JobNotFound as e:
        return JSONResponse(status_code=404, content={"error": str(e)})
    except InvalidTransition as e:
        return JSONResponse(status_code=409, content={"error": str(e)})

    logger.info(f"[API] Cancel requested for job {job_id} (status={job.status.value})")
    return job.to_dict()
