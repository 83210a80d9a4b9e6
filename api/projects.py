from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from api.dependencies import get_current_identity, get_project_service
from api.models import (
    AdCopiesResponse,
    AdCopyCreate,
    AdCopyOut,
    AdCopyResponse,
    AdCopyUpdate,
    ImageCreate,
    ImageResponse,
    ImagesResponse,
    ImageWithVersionsOut,
    ProjectCreate,
    ProjectDetailOut,
    ProjectDetailResponse,
    ProjectOut,
    ProjectResponse,
    ProjectsResponse,
    SuccessResponse,
)
from api.services.project_service import ProjectService
from api.services.session_service import Identity
import logging

router = APIRouter(prefix="/projects", tags=["projects"])
logger = logging.getLogger(__name__)


@router.get("/", response_model=ProjectsResponse)
def list_projects(
    identity: Identity = Depends(get_current_identity),
    project_service: ProjectService = Depends(get_project_service),
):
    projects = project_service.list_projects(identity.id)
    return ProjectsResponse(projects=[ProjectOut.model_validate(p) for p in projects])


@router.post("/", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    body: ProjectCreate,
    identity: Identity = Depends(get_current_identity),
    project_service: ProjectService = Depends(get_project_service),
):
    project = project_service.create_project(
        identity.id,
        name=body.name,
        client_name=body.client_name,
        notes=body.notes,
    )
    return ProjectResponse(project=ProjectOut.model_validate(project))


@router.get("/{project_id}", response_model=ProjectDetailResponse)
def get_project(
    project_id: int,
    identity: Identity = Depends(get_current_identity),
    project_service: ProjectService = Depends(get_project_service),
):
    project = project_service.get_project(identity.id, project_id)
    return ProjectDetailResponse(project=ProjectDetailOut.model_validate(project))


# Images


@router.get("/{project_id}/images", response_model=ImagesResponse)
def list_images(
    project_id: int,
    identity: Identity = Depends(get_current_identity),
    project_service: ProjectService = Depends(get_project_service),
):
    images = project_service.list_images(identity.id, project_id)
    return ImagesResponse(images=[ImageWithVersionsOut.model_validate(image) for image in images])


@router.post("/{project_id}/images", response_model=ImageResponse, status_code=status.HTTP_201_CREATED)
def add_image(
    project_id: int,
    body: ImageCreate,
    identity: Identity = Depends(get_current_identity),
    project_service: ProjectService = Depends(get_project_service),
):
    image = project_service.add_image(identity.id, project_id, body.original_url, body.label)
    return ImageResponse(image=ImageWithVersionsOut.model_validate(image))


@router.post("/{project_id}/images/upload", response_model=ImageResponse, status_code=status.HTTP_201_CREATED)
def upload_image(
    project_id: int,
    file: UploadFile = File(...),
    label: Optional[str] = Form(None),
    identity: Identity = Depends(get_current_identity),
    project_service: ProjectService = Depends(get_project_service),
):
    image = project_service.upload_image(
        identity.id,
        project_id,
        data=file.file.read(),
        filename=file.filename,
        content_type=file.content_type,
        label=label,
    )
    return ImageResponse(image=ImageWithVersionsOut.model_validate(image))


@router.post(
    "/{project_id}/images/upload-multiple",
    response_model=ImagesResponse,
    status_code=status.HTTP_201_CREATED,
)
def upload_images(
    project_id: int,
    files: List[UploadFile] = File(...),
    identity: Identity = Depends(get_current_identity),
    project_service: ProjectService = Depends(get_project_service),
):
    images = []
    for upload in files:
        images.append(
            project_service.upload_image(
                identity.id,
                project_id,
                data=upload.file.read(),
                filename=upload.filename,
                content_type=upload.content_type,
                label=upload.filename,
            )
        )
    logger.info(f"Uploaded {len(images)} image(s) to project {project_id}")
    return ImagesResponse(images=[ImageWithVersionsOut.model_validate(image) for image in images])


# Ad copies


@router.get("/{project_id}/ad-copies", response_model=AdCopiesResponse)
def list_ad_copies(
    project_id: int,
    identity: Identity = Depends(get_current_identity),
    project_service: ProjectService = Depends(get_project_service),
):
    ad_copies = project_service.list_ad_copies(identity.id, project_id)
    return AdCopiesResponse(ad_copies=[AdCopyOut.model_validate(ad_copy) for ad_copy in ad_copies])


@router.post("/{project_id}/ad-copies", response_model=AdCopyResponse, status_code=status.HTTP_201_CREATED)
def create_ad_copy(
    project_id: int,
    body: AdCopyCreate,
    identity: Identity = Depends(get_current_identity),
    project_service: ProjectService = Depends(get_project_service),
):
    ad_copy = project_service.create_ad_copy(
        identity.id,
        project_id,
        channel=body.channel,
        title=body.title,
        description=body.description,
        keywords=body.keywords,
    )
    return AdCopyResponse(ad_copy=AdCopyOut.model_validate(ad_copy))


@router.patch("/{project_id}/ad-copies/{ad_copy_id}", response_model=AdCopyResponse)
def update_ad_copy(
    project_id: int,
    ad_copy_id: int,
    body: AdCopyUpdate,
    identity: Identity = Depends(get_current_identity),
    project_service: ProjectService = Depends(get_project_service),
):
    ad_copy = project_service.update_ad_copy(
        identity.id, project_id, ad_copy_id, body.model_dump(exclude_unset=True)
    )
    return AdCopyResponse(ad_copy=AdCopyOut.model_validate(ad_copy))


@router.delete("/{project_id}/ad-copies/{ad_copy_id}", response_model=SuccessResponse)
def delete_ad_copy(
    project_id: int,
    ad_copy_id: int,
    identity: Identity = Depends(get_current_identity),
    project_service: ProjectService = Depends(get_project_service),
):
    project_service.delete_ad_copy(identity.id, project_id, ad_copy_id)
    return SuccessResponse()
