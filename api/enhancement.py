from fastapi import APIRouter, Depends, status
from api.dependencies import get_current_identity, get_enhancement_service
from api.models import (
    CompleteJobRequest,
    CreateJobsRequest,
    JobOut,
    JobResponse,
    JobsResponse,
    JobWithImageOut,
    ProjectJobsResponse,
)
from api.services.enhancement_service import EnhancementService
from api.services.session_service import Identity

router = APIRouter(prefix="/enhancement", tags=["enhancement"])


@router.post("/jobs", response_model=JobsResponse, status_code=status.HTTP_201_CREATED)
def create_jobs(
    body: CreateJobsRequest,
    identity: Identity = Depends(get_current_identity),
    enhancement_service: EnhancementService = Depends(get_enhancement_service),
):
    jobs = enhancement_service.create_jobs(identity.id, body.project_id, body.image_ids)
    return JobsResponse(jobs=[JobOut.model_validate(job) for job in jobs])


@router.get("/projects/{project_id}/jobs", response_model=ProjectJobsResponse)
def list_project_jobs(
    project_id: int,
    identity: Identity = Depends(get_current_identity),
    enhancement_service: EnhancementService = Depends(get_enhancement_service),
):
    jobs = enhancement_service.list_jobs(identity.id, project_id)
    return ProjectJobsResponse(jobs=[JobWithImageOut.model_validate(job) for job in jobs])


# Called by whatever runs the enhancement once the result is stored
@router.post("/jobs/{job_id}/complete", response_model=JobResponse)
def complete_job(
    job_id: int,
    body: CompleteJobRequest,
    identity: Identity = Depends(get_current_identity),
    enhancement_service: EnhancementService = Depends(get_enhancement_service),
):
    job = enhancement_service.mark_completed(identity.id, job_id, body.enhanced_url)
    return JobResponse(job=JobOut.model_validate(job))
