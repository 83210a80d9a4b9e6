from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from db.models.enhancement import EnhancementJob, JobStatus


class EnhancementRepository:
    def __init__(self, db: Session):
        self.db = db

    def add_jobs(self, jobs: list[EnhancementJob]) -> list[EnhancementJob]:
        """Caller commits."""
        self.db.add_all(jobs)
        self.db.flush()
        return jobs

    def get_by_id(self, job_id: int, user_id: int) -> Optional[EnhancementJob]:
        return (
            self.db.query(EnhancementJob)
            .filter(EnhancementJob.id == job_id, EnhancementJob.user_id == user_id)
            .first()
        )

    def list_by_project(self, project_id: int, user_id: int) -> list[EnhancementJob]:
        return (
            self.db.query(EnhancementJob)
            .options(joinedload(EnhancementJob.image))
            .filter(EnhancementJob.project_id == project_id, EnhancementJob.user_id == user_id)
            .order_by(EnhancementJob.created_at.desc(), EnhancementJob.id.desc())
            .all()
        )

    def claim_completion(self, job_id: int, completed_at: datetime) -> bool:
        """Flip PENDING to COMPLETED. Caller commits.

        Returns False when the job was already completed.
        """
        updated = (
            self.db.query(EnhancementJob)
            .filter(EnhancementJob.id == job_id, EnhancementJob.status == JobStatus.PENDING.value)
            .update(
                {
                    EnhancementJob.status: JobStatus.COMPLETED.value,
                    EnhancementJob.completed_at: completed_at,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def set_result_version(self, job_id: int, version_id: int) -> None:
        """Caller commits."""
        self.db.query(EnhancementJob).filter(EnhancementJob.id == job_id).update(
            {EnhancementJob.result_version_id: version_id}, synchronize_session=False
        )
