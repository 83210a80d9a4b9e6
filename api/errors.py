import enum
from typing import Any, Optional


class ErrorCode(str, enum.Enum):
    """Named failure conditions. Each one maps to exactly one HTTP status."""

    INVALID_INPUT = "INVALID_INPUT"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    MFA_REQUIRED = "MFA_REQUIRED"
    MFA_INVALID = "MFA_INVALID"
    MFA_NOT_SETUP = "MFA_NOT_SETUP"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    NOT_FOUND_OR_FORBIDDEN = "NOT_FOUND_OR_FORBIDDEN"
    PLAN_NOT_FOUND = "PLAN_NOT_FOUND"
    CONFLICT = "CONFLICT"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_USED = "TOKEN_USED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_IMAGES = "INVALID_IMAGES"
    INVALID_IMAGE_VERSIONS = "INVALID_IMAGE_VERSIONS"
    NO_ACTIVE_SUBSCRIPTION = "NO_ACTIVE_SUBSCRIPTION"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    STORAGE_NOT_CONFIGURED = "STORAGE_NOT_CONFIGURED"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.INVALID_CREDENTIALS: 401,
    ErrorCode.MFA_REQUIRED: 401,
    ErrorCode.MFA_INVALID: 401,
    ErrorCode.MFA_NOT_SETUP: 400,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.NOT_FOUND_OR_FORBIDDEN: 404,
    ErrorCode.PLAN_NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.ALREADY_VERIFIED: 400,
    ErrorCode.TOKEN_INVALID: 400,
    ErrorCode.TOKEN_USED: 400,
    ErrorCode.TOKEN_EXPIRED: 400,
    ErrorCode.INVALID_IMAGES: 400,
    ErrorCode.INVALID_IMAGE_VERSIONS: 400,
    ErrorCode.NO_ACTIVE_SUBSCRIPTION: 402,
    ErrorCode.INSUFFICIENT_CREDITS: 402,
    ErrorCode.STORAGE_NOT_CONFIGURED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}

_DEFAULT_DETAILS = {
    ErrorCode.INVALID_INPUT: "Invalid input",
    ErrorCode.UNAUTHENTICATED: "Not authenticated",
    ErrorCode.INVALID_CREDENTIALS: "Invalid email or password",
    ErrorCode.MFA_REQUIRED: "MFA code required",
    ErrorCode.MFA_INVALID: "Invalid MFA code",
    ErrorCode.MFA_NOT_SETUP: "MFA has not been set up",
    ErrorCode.FORBIDDEN: "Forbidden",
    ErrorCode.NOT_FOUND: "Not found",
    ErrorCode.NOT_FOUND_OR_FORBIDDEN: "Not found",
    ErrorCode.PLAN_NOT_FOUND: "Plan not found",
    ErrorCode.CONFLICT: "Conflict",
    ErrorCode.ALREADY_VERIFIED: "Email is already verified",
    ErrorCode.TOKEN_INVALID: "Invalid token",
    ErrorCode.TOKEN_USED: "Token already used",
    ErrorCode.TOKEN_EXPIRED: "Token expired",
    ErrorCode.INVALID_IMAGES: "Some images do not belong to project",
    ErrorCode.INVALID_IMAGE_VERSIONS: "Some image versions do not belong to the listing's project",
    ErrorCode.NO_ACTIVE_SUBSCRIPTION: "No active subscription",
    ErrorCode.INSUFFICIENT_CREDITS: "Insufficient AI credits",
    ErrorCode.STORAGE_NOT_CONFIGURED: "Storage not configured",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
}


class ServiceException(Exception):
    def __init__(self, code: ErrorCode, detail: Optional[str] = None, **extra: Any):
        self.code = code
        self.detail = detail or _DEFAULT_DETAILS[code]
        self.extra = extra
        super().__init__(self.detail)

    @property
    def status_code(self) -> int:
        return self.code.status_code

    def to_dict(self) -> dict[str, Any]:
        body = {"detail": self.detail, "code": self.code.value}
        body.update(self.extra)
        return body

    def __str__(self):
        return str(self.detail)
