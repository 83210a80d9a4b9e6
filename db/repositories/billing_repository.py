from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from db.models.billing import CreditUsage, Plan, Subscription


class BillingRepository:
    def __init__(self, db: Session):
        self.db = db

    # Plans

    def list_plans(self) -> list[Plan]:
        return self.db.query(Plan).order_by(Plan.monthly_price_usd.asc(), Plan.id.asc()).all()

    def get_plan(self, plan_id: int) -> Optional[Plan]:
        return self.db.query(Plan).filter(Plan.id == plan_id).first()

    def create_plan(self, plan: Plan) -> Plan:
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        return plan

    def update_plan(self, plan_id: int, update_data: dict) -> Optional[Plan]:
        plan = self.get_plan(plan_id)
        if not plan:
            return None
        for key, value in update_data.items():
            if hasattr(plan, key):
                setattr(plan, key, value)
        self.db.commit()
        self.db.refresh(plan)
        return plan

    # Subscriptions

    def get_active_subscription(self, user_id: int) -> Optional[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(Subscription.user_id == user_id, Subscription.is_active.is_(True))
            .order_by(Subscription.start_date.desc())
            .first()
        )

    def deactivate_active_subscriptions(self, user_id: int, ended_at: datetime) -> int:
        """Caller commits."""
        return (
            self.db.query(Subscription)
            .filter(Subscription.user_id == user_id, Subscription.is_active.is_(True))
            .update(
                {Subscription.is_active: False, Subscription.end_date: ended_at},
                synchronize_session=False,
            )
        )

    def add_subscription(self, subscription: Subscription) -> Subscription:
        """Caller commits."""
        self.db.add(subscription)
        self.db.flush()
        return subscription

    def lock_subscription_for_charge(self, subscription_id: int) -> bool:
        """Take the write lock that serializes credit charges. Caller commits.

        Must be the first write of the charging transaction: a concurrent
        charge on the same subscription blocks here until this one ends.
        Returns False if the subscription is no longer active.
        """
        updated = (
            self.db.query(Subscription)
            .filter(Subscription.id == subscription_id, Subscription.is_active.is_(True))
            .update(
                {Subscription.usage_version: Subscription.usage_version + 1},
                synchronize_session=False,
            )
        )
        return updated == 1

    # Credit ledger

    def get_used_credits(self, subscription_id: int) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(CreditUsage.credits_used), 0))
            .filter(CreditUsage.subscription_id == subscription_id)
            .scalar()
        )
        return int(total)

    def add_credit_usage(self, usage: CreditUsage) -> CreditUsage:
        """Caller commits."""
        self.db.add(usage)
        return usage
