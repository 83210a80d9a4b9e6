import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from api.errors import ErrorCode, ServiceException
from config import Settings
from db.models.user import Role
from db.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as asserted by a valid session token."""

    id: int
    email: str


class SessionService:
    def __init__(self, settings: Settings, user_repo: UserRepository):
        self.secret_key = settings.JWT_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.expires_delta = timedelta(minutes=settings.JWT_EXPIRES_MINUTES)
        self.user_repo = user_repo

    def issue(self, user_id: int, email: str) -> str:
        now = datetime.now(timezone.utc)
        expire = now + self.expires_delta
        payload = {"sub": str(user_id), "email": email, "iat": now, "exp": expire}
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.info(f"Issued session for user {user_id}, expires at {expire}")
        return token

    def validate(self, token: str) -> Identity:
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Session token has expired")
            raise ServiceException(ErrorCode.UNAUTHENTICATED, "Invalid or expired token")
        except jwt.PyJWTError as e:
            logger.warning(f"Session token rejected: {e}")
            raise ServiceException(ErrorCode.UNAUTHENTICATED, "Invalid or expired token")

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            logger.error(f"Invalid user id format in token: {payload.get('sub')!r}")
            raise ServiceException(ErrorCode.UNAUTHENTICATED, "Invalid or expired token")
        return Identity(id=user_id, email=payload.get("email", ""))

    def require_role(self, identity: Identity, role: Role) -> Identity:
        # Looked up on every call so role changes apply without a new login
        roles = self.user_repo.get_roles(identity.id)
        if role.value not in roles:
            logger.warning(f"User {identity.id} lacks role {role.value}")
            raise ServiceException(ErrorCode.FORBIDDEN, f"{role.value} role required")
        return identity
