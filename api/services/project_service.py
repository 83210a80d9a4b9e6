import logging
from typing import Optional

from api.errors import ErrorCode, ServiceException
from api.services.storage_service import StorageService
from db.models.project import Image, Project, ProjectAdCopy
from db.repositories.project_repository import ProjectRepository

logger = logging.getLogger(__name__)


class ProjectService:
    def __init__(self, project_repo: ProjectRepository, storage_service: Optional[StorageService] = None):
        self.project_repo = project_repo
        self.storage_service = storage_service

    def list_projects(self, user_id: int) -> list[Project]:
        return self.project_repo.list_by_user(user_id)

    def create_project(
        self,
        user_id: int,
        name: str,
        client_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Project:
        project = Project(user_id=user_id, name=name, client_name=client_name, notes=notes)
        self.project_repo.create(project)
        logger.info(f"Created project {project.id} for user {user_id}")
        return project

    def get_project(self, user_id: int, project_id: int) -> Project:
        project = self.project_repo.get_by_id(project_id, user_id)
        if not project:
            raise ServiceException(ErrorCode.NOT_FOUND_OR_FORBIDDEN, "Project not found")
        return project

    # Images

    def add_image(self, user_id: int, project_id: int, original_url: str, label: Optional[str] = None) -> Image:
        self.get_project(user_id, project_id)
        image = Image(project_id=project_id, original_url=original_url, label=label)
        self.project_repo.add_image(image, original_url)
        logger.info(f"Added image {image.id} to project {project_id}")
        return image

    def list_images(self, user_id: int, project_id: int) -> list[Image]:
        self.get_project(user_id, project_id)
        return self.project_repo.list_images(project_id)

    def upload_image(
        self,
        user_id: int,
        project_id: int,
        data: bytes,
        filename: Optional[str],
        content_type: Optional[str],
        label: Optional[str] = None,
    ) -> Image:
        # Ownership is checked before anything reaches the bucket
        self.get_project(user_id, project_id)
        if self.storage_service is None:
            raise ServiceException(ErrorCode.STORAGE_NOT_CONFIGURED)
        key = self.storage_service.project_image_key(user_id, project_id, filename)
        url = self.storage_service.put(key, data, content_type)
        return self.add_image(user_id, project_id, url, label)

    # Ad copies

    def list_ad_copies(self, user_id: int, project_id: int) -> list[ProjectAdCopy]:
        self.get_project(user_id, project_id)
        return self.project_repo.list_ad_copies(project_id)

    def create_ad_copy(
        self,
        user_id: int,
        project_id: int,
        channel: str,
        title: str,
        description: str,
        keywords: Optional[str] = None,
    ) -> ProjectAdCopy:
        self.get_project(user_id, project_id)
        ad_copy = ProjectAdCopy(
            project_id=project_id,
            channel=channel,
            title=title,
            description=description,
            keywords=keywords,
        )
        self.project_repo.create_ad_copy(ad_copy)
        logger.info(f"Created ad copy {ad_copy.id} for project {project_id}")
        return ad_copy

    def update_ad_copy(self, user_id: int, project_id: int, ad_copy_id: int, update_data: dict) -> ProjectAdCopy:
        ad_copy = self._get_ad_copy(user_id, project_id, ad_copy_id)
        return self.project_repo.update_ad_copy(ad_copy, update_data)

    def delete_ad_copy(self, user_id: int, project_id: int, ad_copy_id: int) -> None:
        ad_copy = self._get_ad_copy(user_id, project_id, ad_copy_id)
        self.project_repo.delete_ad_copy(ad_copy)
        logger.info(f"Deleted ad copy {ad_copy_id} from project {project_id}")

    def _get_ad_copy(self, user_id: int, project_id: int, ad_copy_id: int) -> ProjectAdCopy:
        ad_copy = self.project_repo.get_ad_copy(ad_copy_id, project_id, user_id)
        if not ad_copy:
            raise ServiceException(ErrorCode.NOT_FOUND_OR_FORBIDDEN, "Ad copy not found")
        return ad_copy
