from fastapi import APIRouter, Depends, status
from api.dependencies import get_billing_service, get_current_identity, require_admin
from api.models import (
    CreditUsageOut,
    PlanCreate,
    PlanOut,
    PlanResponse,
    PlansResponse,
    PlanUpdate,
    SubscribeRequest,
    SubscriptionOut,
    SubscriptionResponse,
    UsageResponse,
    UsageSummaryOut,
)
from api.services.billing_service import BillingService
from api.services.session_service import Identity

# All billing routes require authentication
router = APIRouter(prefix="/billing", tags=["billing"], dependencies=[Depends(get_current_identity)])


@router.get("/plans", response_model=PlansResponse)
def list_plans(billing_service: BillingService = Depends(get_billing_service)):
    plans = billing_service.list_plans()
    return PlansResponse(plans=[PlanOut.model_validate(plan) for plan in plans])


@router.get("/me/subscription", response_model=SubscriptionResponse)
def get_my_subscription(
    identity: Identity = Depends(get_current_identity),
    billing_service: BillingService = Depends(get_billing_service),
):
    subscription = billing_service.get_active(identity.id)
    if not subscription:
        return SubscriptionResponse(subscription=None)
    return SubscriptionResponse(subscription=SubscriptionOut.model_validate(subscription))


@router.post("/subscribe", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
def subscribe(
    body: SubscribeRequest,
    identity: Identity = Depends(get_current_identity),
    billing_service: BillingService = Depends(get_billing_service),
):
    subscription = billing_service.subscribe(identity.id, body.plan_id)
    return SubscriptionResponse(subscription=SubscriptionOut.model_validate(subscription))


@router.get("/me/usage", response_model=UsageResponse)
def get_my_usage(
    identity: Identity = Depends(get_current_identity),
    billing_service: BillingService = Depends(get_billing_service),
):
    summary = billing_service.usage_summary(identity.id)
    return UsageResponse(
        usage=UsageSummaryOut(
            subscription_id=summary.subscription_id,
            plan=PlanOut.model_validate(summary.plan),
            usage=CreditUsageOut(
                used_credits=summary.used_credits,
                remaining_credits=summary.remaining_credits,
            ),
        )
    )


# Admin-only: create/update plans


@router.post("/plans", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
def create_plan(
    body: PlanCreate,
    admin: Identity = Depends(require_admin),
    billing_service: BillingService = Depends(get_billing_service),
):
    plan = billing_service.create_plan(
        name=body.name,
        description=body.description,
        monthly_price_usd=body.monthly_price_usd,
        max_ai_credits=body.max_ai_credits,
        max_storage_mb=body.max_storage_mb,
    )
    return PlanResponse(plan=PlanOut.model_validate(plan))


@router.patch("/plans/{plan_id}", response_model=PlanResponse)
def update_plan(
    plan_id: int,
    body: PlanUpdate,
    admin: Identity = Depends(require_admin),
    billing_service: BillingService = Depends(get_billing_service),
):
    plan = billing_service.update_plan(plan_id, body.model_dump(exclude_unset=True))
    return PlanResponse(plan=PlanOut.model_validate(plan))
