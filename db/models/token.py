import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from db.base import Base, utcnow


class TokenKind(str, enum.Enum):
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"


class SingleUseToken(Base):
    """An expiring token that can be consumed exactly once."""

    __tablename__ = "single_use_tokens"
    id = Column(Integer, primary_key=True)
    kind = Column(String, nullable=False)
    token = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
