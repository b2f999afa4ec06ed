"""
Router for video assembly endpoints.
Handles synchronous assembly, background job submission, and job status.
"""

from fastapi import APIRouter, HTTPException, Request, status

from scene_montage.config import STATUS_SUFFIX
from scene_montage.errors import AssemblyError
from scene_montage.orchestrator import JobOrchestrator
from scene_montage.schemas import AssembleRequest, AssembleResponse, JobResponse, StatusResponse

# Create the router
router = APIRouter(tags=["assembly"])


def get_orchestrator(request: Request) -> JobOrchestrator:
    return request.app.state.orchestrator


@router.post("/", response_model=AssembleResponse)
def assemble(payload: AssembleRequest, request: Request):
    """
    Assembles the video and answers once it has been uploaded.
    Runs in FastAPI's threadpool, so the event loop stays free.
    """
    orchestrator = get_orchestrator(request)
    try:
        result = orchestrator.run(payload)
    except AssemblyError as e:
        raise HTTPException(status_code=e.status_code, detail=f"Assembly failed: {e}")

    return AssembleResponse(
        message="Video assembled successfully!",
        output_file=result.output_name,
        resolution=result.format.label,
        duration=round(result.duration, 3),
        warnings=result.warnings,
    )


@router.post("/jobs", response_model=JobResponse, status_code=status.HTTP_202_ACCEPTED)
def submit_job(payload: AssembleRequest, request: Request):
    """
    Validates the payload, schedules the job, and immediately returns its id
    along with the blob key its status record will be published under.
    """
    orchestrator = get_orchestrator(request)
    try:
        job_id = orchestrator.submit(payload)
    except AssemblyError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return JobResponse(
        job_id=job_id,
        status="pending",
        status_location=f"{job_id}{STATUS_SUFFIX}",
    )


@router.get("/jobs/{job_id}", response_model=StatusResponse)
def get_job_status(job_id: str, request: Request):
    """Checks the status of a job in the ledger."""
    job = get_orchestrator(request).job_status(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found.")

    return StatusResponse(
        job_id=job.id,
        status=job.status,
        resolution=job.resolution,
        duration=job.duration,
        error=job.error,
        warnings=job.warnings,
        created_at=job.created_at,
        finished_at=job.finished_at,
    )
