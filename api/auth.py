from fastapi import APIRouter, Depends, Request, status
from api.dependencies import get_auth_service, get_current_identity
from api.limiter import limiter
from api.models import (
    AuthResponse,
    AuthUser,
    EmailRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    MfaCodeRequest,
    MfaSetupResponse,
    RegisterRequest,
    ResetPasswordRequest,
    SuccessResponse,
    TokenRequest,
    UserProfile,
)
from api.services.auth_service import AuthService
from api.services.session_service import Identity

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/hour")  # Strict limit for signup
def register(
    request: Request,
    body: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    token, user = auth_service.register(body.email, body.password, body.display_name)
    return AuthResponse(token=token, user=AuthUser(id=user.id, email=user.email))


@router.post("/login", response_model=AuthResponse)
@limiter.limit("10/minute")  # Prevent brute force
def login(
    request: Request,
    body: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    token, user = auth_service.login(body.email, body.password, body.mfa_code)
    return AuthResponse(token=token, user=AuthUser(id=user.id, email=user.email))


@router.post("/verify-email", response_model=SuccessResponse)
def verify_email(body: TokenRequest, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.verify_email(body.token)
    return SuccessResponse()


@router.post("/resend-verification", response_model=MessageResponse)
@limiter.limit("5/hour")
def resend_verification(
    request: Request,
    body: EmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    auth_service.resend_verification(body.email)
    return MessageResponse(message="Verification email resent. Please check your inbox.")


@router.post("/forgot-password", response_model=SuccessResponse)
@limiter.limit("5/hour")
def forgot_password(
    request: Request,
    body: EmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    auth_service.request_password_reset(body.email)
    return SuccessResponse()


@router.post("/reset-password", response_model=SuccessResponse)
def reset_password(body: ResetPasswordRequest, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.reset_password(body.token, body.new_password)
    return SuccessResponse()


@router.get("/me", response_model=MeResponse)
def me(
    identity: Identity = Depends(get_current_identity),
    auth_service: AuthService = Depends(get_auth_service),
):
    user = auth_service.get_by_id(identity.id)
    return MeResponse(user=UserProfile.model_validate(user))


@router.post("/mfa/setup", response_model=MfaSetupResponse)
def setup_mfa(
    identity: Identity = Depends(get_current_identity),
    auth_service: AuthService = Depends(get_auth_service),
):
    return MfaSetupResponse(**auth_service.setup_mfa(identity.id))


@router.post("/mfa/enable", response_model=SuccessResponse)
def enable_mfa(
    body: MfaCodeRequest,
    identity: Identity = Depends(get_current_identity),
    auth_service: AuthService = Depends(get_auth_service),
):
    auth_service.enable_mfa(identity.id, body.code)
    return SuccessResponse()


@router.post("/mfa/disable", response_model=SuccessResponse)
def disable_mfa(
    body: MfaCodeRequest,
    identity: Identity = Depends(get_current_identity),
    auth_service: AuthService = Depends(get_auth_service),
):
    auth_service.disable_mfa(identity.id, body.code)
    return SuccessResponse()
