from .user import Role, User, UserRole
from .token import SingleUseToken, TokenKind
from .billing import CreditUsage, Plan, Subscription
from .project import Image, ImageVersion, ImageVersionType, Project, ProjectAdCopy
from .enhancement import EnhancementJob, JobStatus
from .listing import Listing, ListingMedia, ListingStatus

__all__ = [
    "Role",
    "User",
    "UserRole",
    "SingleUseToken",
    "TokenKind",
    "CreditUsage",
    "Plan",
    "Subscription",
    "Image",
    "ImageVersion",
    "ImageVersionType",
    "Project",
    "ProjectAdCopy",
    "EnhancementJob",
    "JobStatus",
    "Listing",
    "ListingMedia",
    "ListingStatus",
]
