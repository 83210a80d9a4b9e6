# api/dependencies.py
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from api.errors import ErrorCode, ServiceException
from api.services.auth_service import AuthService
from api.services.billing_service import BillingService
from api.services.email_service import EmailService
from api.services.enhancement_service import EnhancementService
from api.services.listing_service import ListingService
from api.services.project_service import ProjectService
from api.services.session_service import Identity, SessionService
from api.services.storage_service import StorageService
from api.services.token_service import TokenService
from config import Settings, get_settings
from db.engine import SessionLocal
from db.models.user import Role
from db.repositories.billing_repository import BillingRepository
from db.repositories.enhancement_repository import EnhancementRepository
from db.repositories.listing_repository import ListingRepository
from db.repositories.project_repository import ProjectRepository
from db.repositories.token_repository import TokenRepository
from db.repositories.user_repository import UserRepository


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_email_service(settings: Settings = Depends(get_settings)) -> EmailService:
    return EmailService(settings)


def get_storage_service(settings: Settings = Depends(get_settings)) -> StorageService:
    return StorageService(settings)


def get_session_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> SessionService:
    return SessionService(settings, UserRepository(db))


def get_auth_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    session_service: SessionService = Depends(get_session_service),
    email_service: EmailService = Depends(get_email_service),
) -> AuthService:
    token_service = TokenService(TokenRepository(db), settings)
    return AuthService(UserRepository(db), token_service, session_service, email_service, settings)


def get_billing_service(db: Session = Depends(get_db)) -> BillingService:
    return BillingService(BillingRepository(db))


def get_enhancement_service(db: Session = Depends(get_db)) -> EnhancementService:
    return EnhancementService(EnhancementRepository(db), ProjectRepository(db), BillingRepository(db))


def get_project_service(
    db: Session = Depends(get_db),
    storage_service: StorageService = Depends(get_storage_service),
) -> ProjectService:
    return ProjectService(ProjectRepository(db), storage_service)


def get_listing_service(db: Session = Depends(get_db)) -> ListingService:
    return ListingService(ListingRepository(db), ProjectRepository(db))


def get_current_identity(
    authorization: Optional[str] = Header(None),
    session_service: SessionService = Depends(get_session_service),
) -> Identity:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise ServiceException(ErrorCode.UNAUTHENTICATED, "Missing or invalid Authorization header")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise ServiceException(ErrorCode.UNAUTHENTICATED, "Missing or invalid Authorization header")
    return session_service.validate(token)


def require_admin(
    identity: Identity = Depends(get_current_identity),
    session_service: SessionService = Depends(get_session_service),
) -> Identity:
    return session_service.require_role(identity, Role.ADMIN)
