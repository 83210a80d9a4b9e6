import logging

from api.errors import ErrorCode, ServiceException
from db.base import transaction, utcnow
from db.models.billing import CREDIT_REASON_ENHANCEMENT, CreditUsage
from db.models.enhancement import EnhancementJob, JobStatus
from db.models.project import ImageVersion, ImageVersionType
from db.repositories.billing_repository import BillingRepository
from db.repositories.enhancement_repository import EnhancementRepository
from db.repositories.project_repository import ProjectRepository

logger = logging.getLogger(__name__)

CREDITS_PER_IMAGE = 1


class EnhancementService:
    """Admits enhancement jobs against the caller's remaining AI credits."""

    def __init__(
        self,
        job_repo: EnhancementRepository,
        project_repo: ProjectRepository,
        billing_repo: BillingRepository,
    ):
        self.job_repo = job_repo
        self.project_repo = project_repo
        self.billing_repo = billing_repo

    def create_jobs(self, user_id: int, project_id: int, image_ids: list[int]) -> list[EnhancementJob]:
        if not image_ids:
            raise ServiceException(ErrorCode.INVALID_INPUT, "imageIds must not be empty")

        project = self.project_repo.get_by_id(project_id, user_id)
        if not project:
            raise ServiceException(ErrorCode.NOT_FOUND_OR_FORBIDDEN, "Project not found")

        requested = set(image_ids)
        # Duplicates would charge twice for one image
        if len(requested) != len(image_ids) or self.project_repo.find_image_ids(project_id, image_ids) != requested:
            logger.warning(f"User {user_id} requested images outside project {project_id}: {image_ids}")
            raise ServiceException(ErrorCode.INVALID_IMAGES)

        subscription = self.billing_repo.get_active_subscription(user_id)
        if not subscription:
            raise ServiceException(ErrorCode.NO_ACTIVE_SUBSCRIPTION)
        subscription_id = subscription.id
        max_credits = subscription.plan.max_ai_credits
        needed = len(image_ids) * CREDITS_PER_IMAGE

        with transaction(self.billing_repo.db):
            # The lock comes first so the ledger read below sees every
            # charge committed before ours
            if not self.billing_repo.lock_subscription_for_charge(subscription_id):
                raise ServiceException(ErrorCode.NO_ACTIVE_SUBSCRIPTION)
            remaining = max_credits - self.billing_repo.get_used_credits(subscription_id)
            if remaining < needed:
                logger.warning(
                    f"User {user_id} needs {needed} credits, {remaining} remaining "
                    f"on subscription {subscription_id}"
                )
                raise ServiceException(
                    ErrorCode.INSUFFICIENT_CREDITS,
                    requiredCredits=needed,
                    remainingCredits=remaining,
                )

            jobs = self.job_repo.add_jobs(
                [
                    EnhancementJob(
                        user_id=user_id,
                        project_id=project_id,
                        image_id=image_id,
                        status=JobStatus.PENDING.value,
                    )
                    for image_id in image_ids
                ]
            )
            self.billing_repo.add_credit_usage(
                CreditUsage(
                    subscription_id=subscription_id,
                    credits_used=needed,
                    reason=CREDIT_REASON_ENHANCEMENT,
                )
            )

        for job in jobs:
            self.job_repo.db.refresh(job)
        logger.info(
            f"Created {len(jobs)} enhancement job(s) for user {user_id} in project {project_id}, "
            f"charged {needed} credit(s) to subscription {subscription_id}"
        )
        return jobs

    def list_jobs(self, user_id: int, project_id: int) -> list[EnhancementJob]:
        if not self.project_repo.get_by_id(project_id, user_id):
            raise ServiceException(ErrorCode.NOT_FOUND_OR_FORBIDDEN, "Project not found")
        return self.job_repo.list_by_project(project_id, user_id)

    def mark_completed(self, user_id: int, job_id: int, enhanced_url: str) -> EnhancementJob:
        job = self.job_repo.get_by_id(job_id, user_id)
        if not job:
            raise ServiceException(ErrorCode.NOT_FOUND, "Job not found")
        if job.status == JobStatus.COMPLETED.value:
            return job

        image_id = job.image_id
        with transaction(self.job_repo.db):
            # Only the request that flips the status creates the version
            if self.job_repo.claim_completion(job_id, utcnow()):
                version = self.project_repo.add_image_version(
                    ImageVersion(image_id=image_id, type=ImageVersionType.ENHANCED.value, url=enhanced_url)
                )
                self.job_repo.set_result_version(job_id, version.id)
                logger.info(f"Job {job_id} completed with image version {version.id}")
            else:
                logger.info(f"Job {job_id} was already completed")

        self.job_repo.db.refresh(job)
        return job
