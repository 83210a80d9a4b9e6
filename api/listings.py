from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from api.dependencies import get_current_identity, get_listing_service
from api.models import (
    AttachMediaRequest,
    ListingCreate,
    ListingDetailOut,
    ListingDetailResponse,
    ListingMediaOut,
    ListingOut,
    ListingResponse,
    ListingsResponse,
    ListingUpdate,
    ListingWithMediaCreate,
    ListingWithMediaResponse,
    MarketplaceListingResponse,
    MarketplaceListingsResponse,
    MediaResponse,
    PublicListingDetailOut,
)
from api.services.listing_service import LISTING_FIELDS, ListingService
from api.services.session_service import Identity

router = APIRouter(prefix="/listings", tags=["listings"])


def _fields(body) -> dict:
    return body.model_dump(include=set(LISTING_FIELDS), exclude_unset=True)


# Public marketplace, registered before the owner routes


@router.get("/marketplace/listings", response_model=MarketplaceListingsResponse)
def search_marketplace(
    city: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    bedrooms: Optional[int] = Query(None),
    listing_service: ListingService = Depends(get_listing_service),
):
    listings = listing_service.search_marketplace(
        city=city,
        country=country,
        min_price=min_price,
        max_price=max_price,
        bedrooms=bedrooms,
    )
    results = []
    for listing in listings:
        out = ListingDetailOut.model_validate(listing)
        # Search results only carry the hero image
        results.append(out.model_copy(update={"media": [m for m in out.media if m.is_hero]}))
    return MarketplaceListingsResponse(listings=results)


@router.get("/marketplace/listings/{listing_id}", response_model=MarketplaceListingResponse)
def get_marketplace_listing(
    listing_id: int,
    listing_service: ListingService = Depends(get_listing_service),
):
    listing = listing_service.get_public_listing(listing_id)
    return MarketplaceListingResponse(listing=PublicListingDetailOut.model_validate(listing))


# Owner routes


@router.get("/", response_model=ListingsResponse)
def list_listings(
    identity: Identity = Depends(get_current_identity),
    listing_service: ListingService = Depends(get_listing_service),
):
    listings = listing_service.list_listings(identity.id)
    return ListingsResponse(listings=[ListingOut.model_validate(listing) for listing in listings])


@router.post("/", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
def create_listing(
    body: ListingCreate,
    identity: Identity = Depends(get_current_identity),
    listing_service: ListingService = Depends(get_listing_service),
):
    listing = listing_service.create_listing(identity.id, body.project_id, _fields(body))
    return ListingResponse(listing=ListingOut.model_validate(listing))


@router.post("/listings-with-media", response_model=ListingWithMediaResponse, status_code=status.HTTP_201_CREATED)
def create_listing_with_media(
    body: ListingWithMediaCreate,
    identity: Identity = Depends(get_current_identity),
    listing_service: ListingService = Depends(get_listing_service),
):
    listing = listing_service.create_listing_with_media(
        identity.id,
        body.project_id,
        _fields(body),
        body.image_version_ids,
        body.hero_image_version_id,
    )
    return ListingWithMediaResponse(
        listing=ListingOut.model_validate(listing),
        media=[ListingMediaOut.model_validate(item) for item in listing.media],
    )


@router.get("/{listing_id}", response_model=ListingDetailResponse)
def get_listing(
    listing_id: int,
    identity: Identity = Depends(get_current_identity),
    listing_service: ListingService = Depends(get_listing_service),
):
    listing = listing_service.get_listing(identity.id, listing_id)
    return ListingDetailResponse(listing=ListingDetailOut.model_validate(listing))


@router.patch("/{listing_id}", response_model=ListingResponse)
def update_listing(
    listing_id: int,
    body: ListingUpdate,
    identity: Identity = Depends(get_current_identity),
    listing_service: ListingService = Depends(get_listing_service),
):
    listing = listing_service.update_listing(
        identity.id,
        listing_id,
        _fields(body),
        status=body.status.value if body.status else None,
    )
    return ListingResponse(listing=ListingOut.model_validate(listing))


@router.post("/{listing_id}/media", response_model=MediaResponse)
def attach_media(
    listing_id: int,
    body: AttachMediaRequest,
    identity: Identity = Depends(get_current_identity),
    listing_service: ListingService = Depends(get_listing_service),
):
    media = listing_service.attach_media(
        identity.id,
        listing_id,
        body.image_version_ids,
        body.hero_image_version_id,
    )
    return MediaResponse(media=[ListingMediaOut.model_validate(item) for item in media])
