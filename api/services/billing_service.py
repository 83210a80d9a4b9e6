import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from api.errors import ErrorCode, ServiceException
from db.base import transaction, utcnow
from db.models.billing import Plan, Subscription
from db.repositories.billing_repository import BillingRepository

logger = logging.getLogger(__name__)


@dataclass
class UsageSummary:
    subscription_id: int
    plan: Plan
    used_credits: int
    remaining_credits: int


class BillingService:
    def __init__(self, billing_repo: BillingRepository):
        self.billing_repo = billing_repo

    def list_plans(self) -> list[Plan]:
        return self.billing_repo.list_plans()

    def get_active(self, user_id: int) -> Optional[Subscription]:
        return self.billing_repo.get_active_subscription(user_id)

    def subscribe(self, user_id: int, plan_id: int) -> Subscription:
        plan = self.billing_repo.get_plan(plan_id)
        if not plan:
            logger.warning(f"User {user_id} tried to subscribe to missing plan {plan_id}")
            raise ServiceException(ErrorCode.PLAN_NOT_FOUND)

        now = utcnow()
        try:
            with transaction(self.billing_repo.db):
                ended = self.billing_repo.deactivate_active_subscriptions(user_id, now)
                subscription = self.billing_repo.add_subscription(
                    Subscription(user_id=user_id, plan_id=plan.id, start_date=now, is_active=True)
                )
        except IntegrityError:
            logger.warning(f"Concurrent subscribe for user {user_id} lost the race for plan {plan.id}")
            raise ServiceException(ErrorCode.CONFLICT, "Subscription changed concurrently")
        self.billing_repo.db.refresh(subscription)
        logger.info(
            f"User {user_id} subscribed to plan {plan.id} (subscription {subscription.id}, "
            f"{ended} previous subscription(s) ended)"
        )
        return subscription

    def usage_summary(self, user_id: int) -> UsageSummary:
        subscription = self.billing_repo.get_active_subscription(user_id)
        if not subscription:
            raise ServiceException(ErrorCode.NO_ACTIVE_SUBSCRIPTION)
        used = self.billing_repo.get_used_credits(subscription.id)
        return UsageSummary(
            subscription_id=subscription.id,
            plan=subscription.plan,
            used_credits=used,
            remaining_credits=subscription.plan.max_ai_credits - used,
        )

    # Admin operations

    def create_plan(
        self,
        name: str,
        monthly_price_usd: float,
        max_ai_credits: int,
        max_storage_mb: int,
        description: Optional[str] = None,
    ) -> Plan:
        plan = Plan(
            name=name,
            description=description,
            monthly_price_usd=monthly_price_usd,
            max_ai_credits=max_ai_credits,
            max_storage_mb=max_storage_mb,
        )
        self.billing_repo.create_plan(plan)
        logger.info(f"Created plan {plan.id} ({plan.name})")
        return plan

    def update_plan(self, plan_id: int, update_data: dict) -> Plan:
        # An explicit null leaves the field as it is
        update_data = {key: value for key, value in update_data.items() if value is not None}
        plan = self.billing_repo.update_plan(plan_id, update_data)
        if not plan:
            raise ServiceException(ErrorCode.PLAN_NOT_FOUND)
        logger.info(f"Updated plan {plan_id}: {', '.join(sorted(update_data)) or 'no changes'}")
        return plan
