import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable

from api.errors import ErrorCode, ServiceException
from config import Settings
from db.base import transaction, utcnow
from db.models.token import SingleUseToken, TokenKind
from db.repositories.token_repository import TokenRepository

logger = logging.getLogger(__name__)


class TokenService:
    """Issues and consumes single-use, expiring tokens."""

    def __init__(
        self,
        token_repo: TokenRepository,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.token_repo = token_repo
        self.ttl = timedelta(minutes=settings.TOKEN_TTL_MINUTES)
        self.clock = clock

    def issue(self, user_id: int, kind: TokenKind) -> SingleUseToken:
        record = SingleUseToken(
            kind=kind.value,
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            expires_at=self.clock() + self.ttl,
        )
        self.token_repo.create(record)
        logger.info(f"Issued {kind.value} token for user {user_id}, expires at {record.expires_at} UTC")
        return record

    def consume(
        self,
        value: str,
        kind: TokenKind,
        apply_effect: Callable[[int], None],
    ) -> int:
        """Consume a token and run its side effect in the same transaction.

        ``apply_effect`` receives the owner id and must only stage writes on
        the same session; the token is marked used and the effect lands
        together or not at all. Returns the owner id.
        """
        record = self.token_repo.get_by_value(kind, value)
        if record is None:
            logger.warning(f"Unknown {kind.value} token presented")
            raise ServiceException(ErrorCode.TOKEN_INVALID)
        if record.used_at is not None:
            logger.warning(f"{kind.value} token {record.id} replayed")
            raise ServiceException(ErrorCode.TOKEN_USED)
        now = self.clock()
        if now >= record.expires_at:
            logger.warning(f"{kind.value} token {record.id} expired at {record.expires_at}")
            raise ServiceException(ErrorCode.TOKEN_EXPIRED)

        token_id, user_id = record.id, record.user_id
        with transaction(self.token_repo.db):
            # Conditional update: a concurrent consumer loses here
            if not self.token_repo.mark_used(token_id, now):
                raise ServiceException(ErrorCode.TOKEN_USED)
            apply_effect(user_id)

        logger.info(f"Consumed {kind.value} token {token_id} for user {user_id}")
        return user_id
