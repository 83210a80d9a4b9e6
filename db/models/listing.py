import enum

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from db.base import Base, utcnow


class ListingStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class Listing(Base):
    __tablename__ = "listings"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=True)
    currency = Column(String, nullable=True)
    location_city = Column(String, nullable=True, index=True)
    location_state = Column(String, nullable=True)
    location_country = Column(String, nullable=True, index=True)
    property_type = Column(String, nullable=True)
    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Integer, nullable=True)
    area_sqm = Column(Float, nullable=True)
    status = Column(String, nullable=False, default=ListingStatus.DRAFT.value)
    is_published = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    project = relationship("Project")
    media = relationship(
        "ListingMedia",
        back_populates="listing",
        order_by="ListingMedia.sort_order",
        cascade="all, delete-orphan",
    )


class ListingMedia(Base):
    __tablename__ = "listing_media"
    id = Column(Integer, primary_key=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    image_version_id = Column(Integer, ForeignKey("image_versions.id", ondelete="CASCADE"), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_hero = Column(Boolean, nullable=False, default=False)

    listing = relationship("Listing", back_populates="media")
    image_version = relationship("ImageVersion", lazy="joined")
