import logging
from typing import Optional

from api.errors import ErrorCode, ServiceException
from db.base import transaction
from db.models.listing import Listing, ListingMedia, ListingStatus
from db.repositories.listing_repository import ListingRepository
from db.repositories.project_repository import ProjectRepository

logger = logging.getLogger(__name__)

LISTING_FIELDS = (
    "title",
    "description",
    "price",
    "currency",
    "location_city",
    "location_state",
    "location_country",
    "property_type",
    "bedrooms",
    "bathrooms",
    "area_sqm",
)


def _build_media(listing_id: int, version_ids: list[int], hero_version_id: Optional[int]) -> list[ListingMedia]:
    hero_id = hero_version_id if hero_version_id in version_ids else version_ids[0]
    return [
        ListingMedia(
            listing_id=listing_id,
            image_version_id=version_id,
            sort_order=index,
            is_hero=version_id == hero_id,
        )
        for index, version_id in enumerate(version_ids)
    ]


class ListingService:
    def __init__(self, listing_repo: ListingRepository, project_repo: ProjectRepository):
        self.listing_repo = listing_repo
        self.project_repo = project_repo

    def create_listing(self, user_id: int, project_id: int, fields: dict) -> Listing:
        self._require_project(user_id, project_id)
        listing = Listing(user_id=user_id, project_id=project_id, **self._listing_fields(fields))
        self.listing_repo.create(listing)
        logger.info(f"Created listing {listing.id} for project {project_id}")
        return listing

    def create_listing_with_media(
        self,
        user_id: int,
        project_id: int,
        fields: dict,
        version_ids: list[int],
        hero_version_id: Optional[int] = None,
    ) -> Listing:
        self._require_project(user_id, project_id)
        self._require_versions(project_id, version_ids)

        with transaction(self.listing_repo.db):
            listing = self.listing_repo.add_listing(
                Listing(user_id=user_id, project_id=project_id, **self._listing_fields(fields))
            )
            self.listing_repo.replace_media(listing.id, _build_media(listing.id, version_ids, hero_version_id))
        logger.info(f"Created listing {listing.id} with {len(version_ids)} media item(s)")
        return self.listing_repo.get_with_media(listing.id, user_id)

    def list_listings(self, user_id: int) -> list[Listing]:
        return self.listing_repo.list_by_user(user_id)

    def get_listing(self, user_id: int, listing_id: int) -> Listing:
        listing = self.listing_repo.get_with_media(listing_id, user_id)
        if not listing:
            raise ServiceException(ErrorCode.NOT_FOUND, "Listing not found")
        return listing

    def update_listing(self, user_id: int, listing_id: int, fields: dict, status: Optional[str] = None) -> Listing:
        listing = self.listing_repo.get_by_id(listing_id, user_id)
        if not listing:
            raise ServiceException(ErrorCode.NOT_FOUND, "Listing not found")

        update_data = {key: value for key, value in self._listing_fields(fields).items() if value is not None}
        if status is not None:
            update_data["status"] = status
            # Publishing is sticky; other statuses leave the flag as is
            if status == ListingStatus.PUBLISHED.value:
                update_data["is_published"] = True
        listing = self.listing_repo.update(listing, update_data)
        logger.info(f"Updated listing {listing_id} (status={listing.status})")
        return listing

    def attach_media(
        self,
        user_id: int,
        listing_id: int,
        version_ids: list[int],
        hero_version_id: Optional[int] = None,
    ) -> list[ListingMedia]:
        if not version_ids:
            raise ServiceException(ErrorCode.INVALID_INPUT, "imageVersionIds must not be empty")
        listing = self.listing_repo.get_by_id(listing_id, user_id)
        if not listing:
            raise ServiceException(ErrorCode.NOT_FOUND, "Listing not found")
        self._require_versions(listing.project_id, version_ids)

        with transaction(self.listing_repo.db):
            media = self.listing_repo.replace_media(listing_id, _build_media(listing_id, version_ids, hero_version_id))
        for item in media:
            self.listing_repo.db.refresh(item)
        logger.info(f"Attached {len(media)} media item(s) to listing {listing_id}")
        return media

    # Public marketplace

    def search_marketplace(
        self,
        city: Optional[str] = None,
        country: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        bedrooms: Optional[int] = None,
    ) -> list[Listing]:
        return self.listing_repo.list_published(
            city=city,
            country=country,
            min_price=min_price,
            max_price=max_price,
            bedrooms=bedrooms,
        )

    def get_public_listing(self, listing_id: int) -> Listing:
        listing = self.listing_repo.get_published(listing_id)
        if not listing:
            raise ServiceException(ErrorCode.NOT_FOUND, "Listing not found")
        return listing

    def _require_project(self, user_id: int, project_id: int):
        if not self.project_repo.get_by_id(project_id, user_id):
            raise ServiceException(ErrorCode.NOT_FOUND_OR_FORBIDDEN, "Project not found")

    def _require_versions(self, project_id: int, version_ids: list[int]):
        if not version_ids:
            raise ServiceException(ErrorCode.INVALID_INPUT, "imageVersionIds must not be empty")
        if len(set(version_ids)) != len(version_ids):
            raise ServiceException(ErrorCode.INVALID_IMAGE_VERSIONS)
        if self.project_repo.find_versions_in_project(project_id, version_ids) != set(version_ids):
            raise ServiceException(ErrorCode.INVALID_IMAGE_VERSIONS)

    @staticmethod
    def _listing_fields(fields: dict) -> dict:
        return {key: fields.get(key) for key in LISTING_FIELDS if key in fields}
