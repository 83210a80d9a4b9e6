from typing import Optional

from sqlalchemy.orm import Session, selectinload

from db.models.project import Image, ImageVersion, ImageVersionType, Project, ProjectAdCopy


class ProjectRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, project: Project) -> Project:
        self.db.add(project)
        self.db.commit()
        self.db.refresh(project)
        return project

    def get_by_id(self, project_id: int, user_id: int) -> Optional[Project]:
        return (
            self.db.query(Project)
            .filter(Project.id == project_id, Project.user_id == user_id)
            .first()
        )

    def list_by_user(self, user_id: int) -> list[Project]:
        return (
            self.db.query(Project)
            .filter(Project.user_id == user_id)
            .order_by(Project.created_at.desc(), Project.id.desc())
            .all()
        )

    # Images

    def add_image(self, image: Image, original_url: str) -> Image:
        """Insert an image together with its ORIGINAL version."""
        self.db.add(image)
        self.db.flush()
        self.db.add(
            ImageVersion(
                image_id=image.id,
                type=ImageVersionType.ORIGINAL.value,
                url=original_url,
            )
        )
        self.db.commit()
        self.db.refresh(image)
        return image

    def list_images(self, project_id: int) -> list[Image]:
        return (
            self.db.query(Image)
            .options(selectinload(Image.versions))
            .filter(Image.project_id == project_id)
            .order_by(Image.created_at.desc(), Image.id.desc())
            .all()
        )

    def find_image_ids(self, project_id: int, image_ids: list[int]) -> set[int]:
        rows = (
            self.db.query(Image.id)
            .filter(Image.project_id == project_id, Image.id.in_(image_ids))
            .all()
        )
        return {row.id for row in rows}

    def add_image_version(self, version: ImageVersion) -> ImageVersion:
        """Caller commits."""
        self.db.add(version)
        self.db.flush()
        return version

    def find_versions_in_project(self, project_id: int, version_ids: list[int]) -> set[int]:
        rows = (
            self.db.query(ImageVersion.id)
            .join(Image, ImageVersion.image_id == Image.id)
            .filter(Image.project_id == project_id, ImageVersion.id.in_(version_ids))
            .all()
        )
        return {row.id for row in rows}

    # Ad copies

    def list_ad_copies(self, project_id: int) -> list[ProjectAdCopy]:
        return (
            self.db.query(ProjectAdCopy)
            .filter(ProjectAdCopy.project_id == project_id)
            .order_by(ProjectAdCopy.created_at.desc(), ProjectAdCopy.id.desc())
            .all()
        )

    def get_ad_copy(self, ad_copy_id: int, project_id: int, user_id: int) -> Optional[ProjectAdCopy]:
        return (
            self.db.query(ProjectAdCopy)
            .join(Project, ProjectAdCopy.project_id == Project.id)
            .filter(
                ProjectAdCopy.id == ad_copy_id,
                ProjectAdCopy.project_id == project_id,
                Project.user_id == user_id,
            )
            .first()
        )

    def create_ad_copy(self, ad_copy: ProjectAdCopy) -> ProjectAdCopy:
        self.db.add(ad_copy)
        self.db.commit()
        self.db.refresh(ad_copy)
        return ad_copy

    def update_ad_copy(self, ad_copy: ProjectAdCopy, update_data: dict) -> ProjectAdCopy:
        for key, value in update_data.items():
            if value is not None and hasattr(ad_copy, key):
                setattr(ad_copy, key, value)
        self.db.commit()
        self.db.refresh(ad_copy)
        return ad_copy

    def delete_ad_copy(self, ad_copy: ProjectAdCopy) -> None:
        self.db.delete(ad_copy)
        self.db.commit()
