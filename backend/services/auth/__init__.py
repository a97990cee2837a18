"""Authentication domain services."""

from .accounts import (
    MAX_USERNAME_LENGTH,
    create_account,
    get_ban,
    get_profile,
    get_user,
    get_user_by_uid,
    sanitize_username,
    username_format_error,
)
from .identity_resolution import (
    find_user_by_email,
    normalize_email,
    normalize_username,
    registration_conflict_exists,
    resolve_login_user,
    resolve_user_from_candidates,
    username_taken,
)
from .one_time_codes import (
    consume_password_reset_token,
    consume_verification_code,
    delete_verification_codes,
    generate_verification_code,
    hash_reset_token,
    issue_password_reset_token,
    issue_verification_code,
    prune_expired_one_time_codes,
)
from .session_store import (
    MAX_ACTIVE_SESSIONS,
    end_user_sessions,
    enforce_session_limit,
    hash_session_token,
    issue_session_token,
    prune_expired_sessions,
    start_session,
)
from .uid_sequence import UID_SEQUENCE_NAME, next_uid

__all__ = [
    "MAX_USERNAME_LENGTH",
    "create_account",
    "get_ban",
    "get_profile",
    "get_user",
    "get_user_by_uid",
    "sanitize_username",
    "username_format_error",
    "find_user_by_email",
    "normalize_email",
    "normalize_username",
    "registration_conflict_exists",
    "resolve_login_user",
    "resolve_user_from_candidates",
    "username_taken",
    "consume_password_reset_token",
    "consume_verification_code",
    "delete_verification_codes",
    "generate_verification_code",
    "hash_reset_token",
    "issue_password_reset_token",
    "issue_verification_code",
    "prune_expired_one_time_codes",
    "MAX_ACTIVE_SESSIONS",
    "end_user_sessions",
    "enforce_session_limit",
    "hash_session_token",
    "issue_session_token",
    "prune_expired_sessions",
    "start_session",
    "UID_SEQUENCE_NAME",
    "next_uid",
]
