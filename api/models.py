from pydantic import BaseModel, ConfigDict, EmailStr, Field, confloat, conint, constr, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional
import re

from db.models.listing import ListingStatus


def _strip_tags(value):
    # Remove any HTML/script tags
    if value:
        return re.sub(r"<[^>]+>", "", value).strip()
    return value


class ApiModel(BaseModel):
    """camelCase on the wire; snake_case also accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class SuccessResponse(ApiModel):
    success: bool = True


class MessageResponse(ApiModel):
    message: str


# ---- Auth ----


class RegisterRequest(ApiModel):
    email: EmailStr
    password: constr(min_length=8, max_length=128)  # type: ignore
    display_name: constr(min_length=1, max_length=100, strip_whitespace=True)  # type: ignore

    @field_validator("display_name")
    @classmethod
    def sanitize_display_name(cls, display_name):
        return _strip_tags(display_name)


class LoginRequest(ApiModel):
    email: EmailStr
    password: constr(min_length=1)  # type: ignore
    mfa_code: Optional[str] = None


class TokenRequest(ApiModel):
    token: constr(min_length=1, strip_whitespace=True)  # type: ignore


class EmailRequest(ApiModel):
    email: EmailStr


class ResetPasswordRequest(ApiModel):
    token: constr(min_length=1, strip_whitespace=True)  # type: ignore
    new_password: constr(min_length=8, max_length=128)  # type: ignore


class MfaCodeRequest(ApiModel):
    code: constr(min_length=1, max_length=10, strip_whitespace=True)  # type: ignore


class AuthUser(ApiModel):
    id: int
    email: str


class AuthResponse(ApiModel):
    token: str
    user: AuthUser


class UserProfile(ApiModel):
    id: int
    email: str
    display_name: str
    is_email_verified: bool
    mfa_enabled: bool


class MeResponse(ApiModel):
    user: UserProfile


class MfaSetupResponse(ApiModel):
    otpauth_url: str
    base32: str


# ---- Billing ----


class PlanOut(ApiModel):
    id: int
    name: str
    description: Optional[str]
    monthly_price_usd: float
    max_ai_credits: int
    max_storage_mb: int


class PlanCreate(ApiModel):
    name: constr(min_length=1, max_length=100, strip_whitespace=True)  # type: ignore
    description: Optional[str] = None
    monthly_price_usd: confloat(ge=0)  # type: ignore
    max_ai_credits: conint(ge=0)  # type: ignore
    max_storage_mb: conint(ge=0)  # type: ignore


class PlanUpdate(ApiModel):
    name: Optional[constr(min_length=1, max_length=100, strip_whitespace=True)] = None  # type: ignore
    description: Optional[str] = None
    monthly_price_usd: Optional[confloat(ge=0)] = None  # type: ignore
    max_ai_credits: Optional[conint(ge=0)] = None  # type: ignore
    max_storage_mb: Optional[conint(ge=0)] = None  # type: ignore


class PlansResponse(ApiModel):
    plans: list[PlanOut]


class PlanResponse(ApiModel):
    plan: PlanOut


class SubscribeRequest(ApiModel):
    plan_id: int = Field(gt=0)


class SubscriptionOut(ApiModel):
    id: int
    user_id: int
    plan_id: int
    start_date: datetime
    end_date: Optional[datetime]
    is_active: bool
    plan: PlanOut


class SubscriptionResponse(ApiModel):
    subscription: Optional[SubscriptionOut]


class CreditUsageOut(ApiModel):
    used_credits: int
    remaining_credits: int


class UsageSummaryOut(ApiModel):
    subscription_id: int
    plan: PlanOut
    usage: CreditUsageOut


class UsageResponse(ApiModel):
    usage: UsageSummaryOut


# ---- Projects and images ----


class ProjectCreate(ApiModel):
    name: constr(min_length=1, max_length=200, strip_whitespace=True)  # type: ignore
    client_name: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def sanitize_name(cls, name):
        return _strip_tags(name)


class ProjectOut(ApiModel):
    id: int
    user_id: int
    name: str
    client_name: Optional[str]
    notes: Optional[str]
    created_at: datetime


class AdCopyOut(ApiModel):
    id: int
    project_id: int
    channel: str
    title: str
    description: str
    keywords: Optional[str]
    created_at: datetime
    updated_at: datetime


class ProjectDetailOut(ProjectOut):
    ad_copies: list[AdCopyOut] = []


class ProjectsResponse(ApiModel):
    projects: list[ProjectOut]


class ProjectResponse(ApiModel):
    project: ProjectOut


class ProjectDetailResponse(ApiModel):
    project: ProjectDetailOut


class ImageCreate(ApiModel):
    original_url: constr(min_length=1, max_length=2048, strip_whitespace=True)  # type: ignore
    label: Optional[str] = None


class ImageVersionOut(ApiModel):
    id: int
    image_id: int
    type: str
    url: str
    created_at: datetime


class ImageOut(ApiModel):
    id: int
    project_id: int
    label: Optional[str]
    original_url: str
    created_at: datetime


class ImageWithVersionsOut(ImageOut):
    versions: list[ImageVersionOut] = []


class ImagesResponse(ApiModel):
    images: list[ImageWithVersionsOut]


class ImageResponse(ApiModel):
    image: ImageWithVersionsOut


class AdCopyCreate(ApiModel):
    channel: constr(min_length=1, max_length=50, strip_whitespace=True)  # type: ignore
    title: constr(min_length=1, max_length=200, strip_whitespace=True)  # type: ignore
    description: constr(min_length=1)  # type: ignore
    keywords: Optional[str] = None


class AdCopyUpdate(ApiModel):
    channel: Optional[constr(min_length=1, max_length=50, strip_whitespace=True)] = None  # type: ignore
    title: Optional[constr(min_length=1, max_length=200, strip_whitespace=True)] = None  # type: ignore
    description: Optional[constr(min_length=1)] = None  # type: ignore
    keywords: Optional[str] = None


class AdCopiesResponse(ApiModel):
    ad_copies: list[AdCopyOut]


class AdCopyResponse(ApiModel):
    ad_copy: AdCopyOut


# ---- Enhancement ----


class CreateJobsRequest(ApiModel):
    project_id: int = Field(gt=0)
    image_ids: list[int] = Field(min_length=1)


class CompleteJobRequest(ApiModel):
    enhanced_url: constr(min_length=1, max_length=2048, strip_whitespace=True)  # type: ignore


class JobOut(ApiModel):
    id: int
    user_id: int
    project_id: int
    image_id: int
    status: str
    result_version_id: Optional[int]
    created_at: datetime
    completed_at: Optional[datetime]


class JobWithImageOut(JobOut):
    image: ImageOut


class JobsResponse(ApiModel):
    jobs: list[JobOut]


class ProjectJobsResponse(ApiModel):
    jobs: list[JobWithImageOut]


class JobResponse(ApiModel):
    job: JobOut


# ---- Listings ----


class ListingFields(ApiModel):
    title: Optional[constr(min_length=1, max_length=200, strip_whitespace=True)] = None  # type: ignore
    description: Optional[str] = None
    price: Optional[confloat(ge=0)] = None  # type: ignore
    currency: Optional[constr(min_length=3, max_length=3)] = None  # type: ignore
    location_city: Optional[str] = None
    location_state: Optional[str] = None
    location_country: Optional[str] = None
    property_type: Optional[str] = None
    bedrooms: Optional[conint(ge=0)] = None  # type: ignore
    bathrooms: Optional[conint(ge=0)] = None  # type: ignore
    area_sqm: Optional[confloat(ge=0)] = None  # type: ignore

    @field_validator("title")
    @classmethod
    def sanitize_title(cls, title):
        return _strip_tags(title)


class ListingCreate(ListingFields):
    project_id: int = Field(gt=0)
    title: constr(min_length=1, max_length=200, strip_whitespace=True)  # type: ignore


class ListingWithMediaCreate(ListingCreate):
    image_version_ids: list[int] = Field(min_length=1)
    hero_image_version_id: Optional[int] = None


class ListingUpdate(ListingFields):
    status: Optional[ListingStatus] = None


class AttachMediaRequest(ApiModel):
    image_version_ids: list[int] = Field(min_length=1)
    hero_image_version_id: Optional[int] = None


class ListingMediaOut(ApiModel):
    id: int
    listing_id: int
    image_version_id: int
    sort_order: int
    is_hero: bool
    image_version: ImageVersionOut


class ListingOut(ApiModel):
    id: int
    user_id: int
    project_id: int
    title: str
    description: Optional[str]
    price: Optional[float]
    currency: Optional[str]
    location_city: Optional[str]
    location_state: Optional[str]
    location_country: Optional[str]
    property_type: Optional[str]
    bedrooms: Optional[int]
    bathrooms: Optional[int]
    area_sqm: Optional[float]
    status: str
    is_published: bool
    created_at: datetime
    updated_at: datetime


class ListingDetailOut(ListingOut):
    media: list[ListingMediaOut] = []


class PublicProjectOut(ApiModel):
    id: int
    name: str


class PublicListingDetailOut(ListingDetailOut):
    project: PublicProjectOut


class ListingsResponse(ApiModel):
    listings: list[ListingOut]


class ListingResponse(ApiModel):
    listing: ListingOut


class ListingDetailResponse(ApiModel):
    listing: ListingDetailOut


class ListingWithMediaResponse(ApiModel):
    listing: ListingOut
    media: list[ListingMediaOut]


class MediaResponse(ApiModel):
    media: list[ListingMediaOut]


class MarketplaceListingsResponse(ApiModel):
    listings: list[ListingDetailOut]


class MarketplaceListingResponse(ApiModel):
    listing: PublicListingDetailOut
