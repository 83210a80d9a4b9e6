import logging
from typing import Optional

import pyotp
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError

from api.errors import ErrorCode, ServiceException
from api.services.email_service import EmailService
from api.services.session_service import SessionService
from api.services.token_service import TokenService
from config import Settings
from db.base import utcnow
from db.models.token import TokenKind
from db.models.user import Role, User
from db.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

BUTTON_STYLE = (
    "display:inline-block;padding:10px 16px;background:#2563eb;"
    "color:white;text-decoration:none;border-radius:4px;"
)


class AuthService:
    def __init__(
        self,
        user_repo: UserRepository,
        token_service: TokenService,
        session_service: SessionService,
        email_service: EmailService,
        settings: Settings,
    ):
        self.user_repo = user_repo
        self.token_service = token_service
        self.session_service = session_service
        self.email_service = email_service
        self.app_base_url = settings.APP_BASE_URL.rstrip("/")
        self.mfa_issuer = settings.MFA_ISSUER
        self.pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

    def get_by_id(self, user_id: int) -> User:
        user = self.user_repo.get_user_by_id(user_id)
        if not user:
            logger.error(f"User with ID {user_id} not found")
            raise ServiceException(ErrorCode.NOT_FOUND, "User not found")
        return user

    # Registration and login

    def register(self, email: str, password: str, display_name: str) -> tuple[str, User]:
        if self.user_repo.get_user_by_email(email):
            logger.warning(f"Email already registered: {email}")
            raise ServiceException(ErrorCode.CONFLICT, "Email already registered")

        user = User(
            email=email,
            password_hash=self.pwd_context.hash(password),
            display_name=display_name,
        )
        try:
            self.user_repo.create_user(user)
        except IntegrityError:
            self.user_repo.db.rollback()
            logger.warning(f"Email registered concurrently: {email}")
            raise ServiceException(ErrorCode.CONFLICT, "Email already registered")
        logger.info(f"Created user {user.id} with email {email}")

        self._send_verification_email(user)
        return self.session_service.issue(user.id, user.email), user

    def login(self, email: str, password: str, mfa_code: Optional[str] = None) -> tuple[str, User]:
        user = self.user_repo.get_user_by_email(email)
        if not user or not self.pwd_context.verify(password, user.password_hash):
            logger.warning(f"Login failed for email {email}: Invalid credentials")
            raise ServiceException(ErrorCode.INVALID_CREDENTIALS)

        if user.mfa_enabled:
            if not mfa_code:
                logger.info(f"MFA code required for user {user.id}")
                raise ServiceException(ErrorCode.MFA_REQUIRED, mfaRequired=True)
            if not user.mfa_secret:
                # Enabled without a secret; cannot be satisfied
                logger.error(f"MFA enabled without a secret for user {user.id}")
                raise RuntimeError("MFA misconfigured")
            if not self._verify_totp(user.mfa_secret, mfa_code):
                logger.warning(f"Invalid MFA code for user {user.id}")
                raise ServiceException(ErrorCode.MFA_INVALID)

        self.user_repo.update_user(user.id, {"last_login_at": utcnow()})
        logger.info(f"User {user.id} logged in")
        return self.session_service.issue(user.id, user.email), user

    # Email verification

    def verify_email(self, token: str) -> None:
        def mark_verified(user_id: int):
            self.user_repo.set_email_verified(user_id, utcnow())

        user_id = self.token_service.consume(token, TokenKind.EMAIL_VERIFICATION, mark_verified)
        logger.info(f"Verified email for user {user_id}")

    def resend_verification(self, email: str) -> None:
        user = self.user_repo.get_user_by_email(email)
        if not user:
            raise ServiceException(ErrorCode.NOT_FOUND, "User not found")
        if user.is_email_verified:
            raise ServiceException(ErrorCode.ALREADY_VERIFIED)
        self._send_verification_email(user)

    def _send_verification_email(self, user: User) -> None:
        record = self.token_service.issue(user.id, TokenKind.EMAIL_VERIFICATION)
        verify_url = f"{self.app_base_url}/verify-email?token={record.token}"
        self.email_service.send(
            to=user.email,
            subject="Verify your email for AIPIX",
            text=(
                f"Hi {user.display_name},\n\n"
                f"Please verify your email by clicking the link below:\n{verify_url}\n\n"
                "If you did not sign up, you can ignore this email."
            ),
            html=(
                f"<p>Hi {user.display_name},</p>"
                "<p>Thank you for signing up to <strong>AIPIX</strong>.</p>"
                "<p>Please verify your email by clicking the button below:</p>"
                f'<p><a href="{verify_url}" style="{BUTTON_STYLE}">Verify Email</a></p>'
                "<p>Or copy and paste this link into your browser:</p>"
                f"<p><code>{verify_url}</code></p>"
                "<p>If you did not sign up, you can ignore this email.</p>"
            ),
        )

    # Password reset

    def request_password_reset(self, email: str) -> None:
        user = self.user_repo.get_user_by_email(email)
        # Same answer whether or not the account exists
        if not user:
            logger.info("Password reset requested for unknown email")
            return

        record = self.token_service.issue(user.id, TokenKind.PASSWORD_RESET)
        reset_url = f"{self.app_base_url}/reset-password?token={record.token}"
        self.email_service.send(
            to=user.email,
            subject="Reset your AIPIX password",
            text=(
                f"Hi {user.display_name},\n\n"
                f"You requested to reset your password. Click the link below to continue:\n{reset_url}\n\n"
                "If you did not request this, you can ignore this email."
            ),
            html=(
                f"<p>Hi {user.display_name},</p>"
                "<p>We received a request to reset your <strong>AIPIX</strong> account password.</p>"
                "<p>Click the button below to choose a new password:</p>"
                f'<p><a href="{reset_url}" style="{BUTTON_STYLE}">Reset Password</a></p>'
                "<p>Or copy and paste this link into your browser:</p>"
                f"<p><code>{reset_url}</code></p>"
                "<p>If you did not request this, you can safely ignore this email.</p>"
            ),
        )
        logger.info(f"Password reset email sent to user {user.id}")

    def reset_password(self, token: str, new_password: str) -> None:
        password_hash = self.pwd_context.hash(new_password)

        def overwrite_password(user_id: int):
            self.user_repo.set_password_hash(user_id, password_hash)

        user_id = self.token_service.consume(token, TokenKind.PASSWORD_RESET, overwrite_password)
        logger.info(f"Password reset for user {user_id}")

    # MFA

    def setup_mfa(self, user_id: int) -> dict:
        user = self.get_by_id(user_id)
        if user.mfa_enabled:
            logger.warning(f"User {user.id} requested MFA setup while MFA is enabled")
            raise ServiceException(ErrorCode.CONFLICT, "MFA already enabled")
        secret = pyotp.random_base32()
        otpauth_url = pyotp.TOTP(secret).provisioning_uri(name=user.email, issuer_name=self.mfa_issuer)
        # Stored now, enabled only once a code proves the authenticator has it
        self.user_repo.update_user(user.id, {"mfa_secret": secret})
        logger.info(f"MFA secret generated for user {user.id}")
        return {"otpauth_url": otpauth_url, "base32": secret}

    def enable_mfa(self, user_id: int, code: str) -> None:
        user = self._require_mfa_secret(user_id)
        if not self._verify_totp(user.mfa_secret, code):
            logger.warning(f"Invalid MFA code while enabling for user {user_id}")
            raise ServiceException(ErrorCode.MFA_INVALID)
        self.user_repo.update_user(user.id, {"mfa_enabled": True})
        logger.info(f"MFA enabled for user {user_id}")

    def disable_mfa(self, user_id: int, code: str) -> None:
        user = self._require_mfa_secret(user_id)
        if not self._verify_totp(user.mfa_secret, code):
            logger.warning(f"Invalid MFA code while disabling for user {user_id}")
            raise ServiceException(ErrorCode.MFA_INVALID)
        self.user_repo.update_user(user.id, {"mfa_enabled": False, "mfa_secret": None})
        logger.info(f"MFA disabled for user {user_id}")

    def _require_mfa_secret(self, user_id: int) -> User:
        user = self.user_repo.get_user_by_id(user_id)
        if not user or not user.mfa_secret:
            raise ServiceException(ErrorCode.MFA_NOT_SETUP)
        return user

    @staticmethod
    def _verify_totp(secret: str, code: str) -> bool:
        # One step of tolerance either side for clock drift
        return pyotp.TOTP(secret).verify(code.strip(), valid_window=1)

    # First-run bootstrap

    def ensure_admin(self, email: str, password: str, display_name: str = "Administrator") -> User:
        user = self.user_repo.get_user_by_email(email)
        if not user:
            user = User(
                email=email,
                password_hash=self.pwd_context.hash(password),
                display_name=display_name,
                email_verified_at=utcnow(),
            )
            self.user_repo.create_user(user)
            logger.info(f"Admin user created: {email}")
        self.user_repo.grant_role(user.id, Role.ADMIN)
        return user
