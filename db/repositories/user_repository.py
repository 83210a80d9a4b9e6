from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from db.models.user import Role, User, UserRole


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def create_user(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def update_user(self, user_id: int, update_data: dict) -> Optional[User]:
        """Update user with dict of fields"""
        existing_user = self.get_user_by_id(user_id)
        if not existing_user:
            return None
        for key, value in update_data.items():
            if hasattr(existing_user, key):
                setattr(existing_user, key, value)
        self.db.commit()
        self.db.refresh(existing_user)
        return existing_user

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def list_users(self, limit: int = None) -> list[User]:
        """Get all users, optionally limited"""
        query = self.db.query(User)
        if limit:
            query = query.limit(limit)
        return query.all()

    # Staged writes; the caller owns the transaction

    def set_email_verified(self, user_id: int, verified_at: datetime) -> None:
        self.db.query(User).filter(User.id == user_id, User.email_verified_at.is_(None)).update(
            {User.email_verified_at: verified_at}, synchronize_session=False
        )

    def set_password_hash(self, user_id: int, password_hash: str) -> None:
        self.db.query(User).filter(User.id == user_id).update(
            {User.password_hash: password_hash}, synchronize_session=False
        )

    # Roles

    def get_roles(self, user_id: int) -> set[str]:
        rows = self.db.query(UserRole.role).filter(UserRole.user_id == user_id).all()
        return {row.role for row in rows}

    def grant_role(self, user_id: int, role: Role) -> None:
        if role.value in self.get_roles(user_id):
            return
        self.db.add(UserRole(user_id=user_id, role=role.value))
        self.db.commit()
