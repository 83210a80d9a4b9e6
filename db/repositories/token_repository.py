from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from db.models.token import SingleUseToken, TokenKind


class TokenRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, token: SingleUseToken) -> SingleUseToken:
        self.db.add(token)
        self.db.commit()
        self.db.refresh(token)
        return token

    def get_by_value(self, kind: TokenKind, value: str) -> Optional[SingleUseToken]:
        return (
            self.db.query(SingleUseToken)
            .filter(SingleUseToken.kind == kind.value, SingleUseToken.token == value)
            .first()
        )

    def mark_used(self, token_id: int, used_at: datetime) -> bool:
        """Set used_at unless it is already set. Caller commits.

        Returns False when another request consumed the token first.
        """
        updated = (
            self.db.query(SingleUseToken)
            .filter(SingleUseToken.id == token_id, SingleUseToken.used_at.is_(None))
            .update({SingleUseToken.used_at: used_at}, synchronize_session=False)
        )
        return updated == 1
