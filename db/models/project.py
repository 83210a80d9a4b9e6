import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from db.base import Base, utcnow


class ImageVersionType(str, enum.Enum):
    ORIGINAL = "ORIGINAL"
    ENHANCED = "ENHANCED"


class Project(Base):
    __tablename__ = "projects"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    client_name = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    images = relationship("Image", back_populates="project", order_by="Image.id")
    ad_copies = relationship(
        "ProjectAdCopy",
        back_populates="project",
        order_by="ProjectAdCopy.created_at.desc()",
        cascade="all, delete-orphan",
    )


class Image(Base):
    __tablename__ = "images"
    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String, nullable=True)
    original_url = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    project = relationship("Project", back_populates="images")
    versions = relationship("ImageVersion", back_populates="image", order_by="ImageVersion.id")


class ImageVersion(Base):
    __tablename__ = "image_versions"
    id = Column(Integer, primary_key=True)
    image_id = Column(Integer, ForeignKey("images.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)
    url = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    image = relationship("Image", back_populates="versions")


class ProjectAdCopy(Base):
    __tablename__ = "project_ad_copies"
    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    channel = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    keywords = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    project = relationship("Project", back_populates="ad_copies")
