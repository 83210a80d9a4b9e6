from fastapi import FastAPI, Request
from fastapi.concurrency import asynccontextmanager
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from api import router as api_router
from api.errors import ErrorCode, ServiceException
from api.limiter import limiter
from api.services.auth_service import AuthService
from api.services.email_service import EmailService
from api.services.session_service import SessionService
from api.services.token_service import TokenService
from config import get_settings
from db.engine import SessionLocal, init_db
from db.repositories.token_repository import TokenRepository
from db.repositories.user_repository import UserRepository
import logging

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    filename=settings.LOG_FILE,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def check_jwt_secret():
    """Warn when the signing secret is one of the known placeholders"""
    if settings.jwt_secret_is_insecure:
        logger.warning(
            "JWT_SECRET is not set or uses a placeholder value. "
            "Set JWT_SECRET in your environment for production."
        )


def initialize_admin_user():
    """Create admin user from environment variables if no users exist"""
    if not (settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD):
        logger.info("No admin credentials in environment, skipping admin creation")
        return

    db = SessionLocal()
    try:
        user_repo = UserRepository(db)
        existing_users = user_repo.list_users(limit=1)
        if existing_users:
            logger.info("Users already exist, skipping admin creation")
            return

        auth_service = AuthService(
            user_repo,
            TokenService(TokenRepository(db), settings),
            SessionService(settings, user_repo),
            EmailService(settings),
            settings,
        )
        logger.info(f"Creating admin user from environment variables: {settings.ADMIN_EMAIL}")
        auth_service.ensure_admin(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    check_jwt_secret()
    initialize_admin_user()
    logger.info("AIPIX backend started")
    yield


app = FastAPI(title="AIPIX backend", lifespan=lifespan)

# Rate limiting setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS Configuration - customize CORS_ORIGINS for production
allowed_origins = settings.cors_origins
if allowed_origins == ["*"]:
    logger.warning(
        "CORS is set to allow all origins (*). "
        "Set CORS_ORIGINS environment variable to restrict origins in production."
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=allowed_origins != ["*"],
    allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
    allow_headers=["*"],
    max_age=600,
)


# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


@app.exception_handler(ServiceException)
async def service_exception_handler(request: Request, exc: ServiceException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code.value} {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"] if part != "body"), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=ErrorCode.INVALID_INPUT.status_code,
        content={"detail": "Invalid input", "code": ErrorCode.INVALID_INPUT.value, "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=ErrorCode.INTERNAL_ERROR.status_code,
        content={"detail": "Internal server error", "code": ErrorCode.INTERNAL_ERROR.value},
    )


app.include_router(api_router)
