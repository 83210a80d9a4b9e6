from typing import Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from db.models.listing import Listing, ListingMedia, ListingStatus


class ListingRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, listing: Listing) -> Listing:
        self.db.add(listing)
        self.db.commit()
        self.db.refresh(listing)
        return listing

    def add_listing(self, listing: Listing) -> Listing:
        """Caller commits."""
        self.db.add(listing)
        self.db.flush()
        return listing

    def get_by_id(self, listing_id: int, user_id: int) -> Optional[Listing]:
        return (
            self.db.query(Listing)
            .filter(Listing.id == listing_id, Listing.user_id == user_id)
            .first()
        )

    def get_with_media(self, listing_id: int, user_id: int) -> Optional[Listing]:
        return (
            self.db.query(Listing)
            .options(selectinload(Listing.media))
            .filter(Listing.id == listing_id, Listing.user_id == user_id)
            .first()
        )

    def list_by_user(self, user_id: int) -> list[Listing]:
        return (
            self.db.query(Listing)
            .filter(Listing.user_id == user_id)
            .order_by(Listing.created_at.desc(), Listing.id.desc())
            .all()
        )

    def update(self, listing: Listing, update_data: dict) -> Listing:
        for key, value in update_data.items():
            if hasattr(listing, key):
                setattr(listing, key, value)
        self.db.commit()
        self.db.refresh(listing)
        return listing

    def replace_media(self, listing_id: int, media: list[ListingMedia]) -> list[ListingMedia]:
        """Drop the listing's media rows and insert the given ones. Caller commits."""
        self.db.query(ListingMedia).filter(ListingMedia.listing_id == listing_id).delete(
            synchronize_session=False
        )
        self.db.add_all(media)
        self.db.flush()
        return media

    # Public marketplace

    def list_published(
        self,
        city: Optional[str] = None,
        country: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        bedrooms: Optional[int] = None,
    ) -> list[Listing]:
        """Published listings, newest first."""
        query = (
            self.db.query(Listing)
            .options(selectinload(Listing.media))
            .filter(Listing.is_published.is_(True), Listing.status == ListingStatus.PUBLISHED.value)
        )
        if city:
            query = query.filter(Listing.location_city == city)
        if country:
            query = query.filter(Listing.location_country == country)
        if min_price is not None:
            query = query.filter(Listing.price >= min_price)
        if max_price is not None:
            query = query.filter(Listing.price <= max_price)
        if bedrooms is not None:
            query = query.filter(Listing.bedrooms == bedrooms)
        return query.order_by(Listing.created_at.desc(), Listing.id.desc()).all()

    def get_published(self, listing_id: int) -> Optional[Listing]:
        return (
            self.db.query(Listing)
            .options(selectinload(Listing.media), joinedload(Listing.project))
            .filter(
                Listing.id == listing_id,
                Listing.is_published.is_(True),
                Listing.status == ListingStatus.PUBLISHED.value,
            )
            .first()
        )
