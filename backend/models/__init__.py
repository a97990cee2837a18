"""SQLModel models package."""

from .audit_log import AuditLogEntry
from .badge import DEFAULT_BADGE_COLOR, Badge, UserBadge
from .banned_user import DEFAULT_BAN_REASON, BannedUser
from .link import Link
from .password_reset_token import PasswordResetToken
from .profile import NO_EFFECT, Profile
from .uid_allocation import UidAllocation
from .user import OWNER_UID, User, UserRole
from .user_session import UserSession
from .verification_code import VerificationCode

__all__ = [
    "User",
    "UserRole",
    "OWNER_UID",
    "Profile",
    "NO_EFFECT",
    "Link",
    "VerificationCode",
    "PasswordResetToken",
    "UserSession",
    "BannedUser",
    "DEFAULT_BAN_REASON",
    "AuditLogEntry",
    "Badge",
    "UserBadge",
    "DEFAULT_BADGE_COLOR",
    "UidAllocation",
]
