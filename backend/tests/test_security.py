"""Password hashing and token primitives."""

from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import HTTPException
import jwt
import pytest

from api.deps import identity_from_claims
from core import create_access_token, decode_token, hash_password, needs_rehash, verify_password
from core.config import settings


def test_hash_and_verify_password():
    hashed = hash_password("correct horse")

    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed) is True
    assert verify_password("wrong horse", hashed) is False
    assert verify_password("correct horse", None) is False
    assert verify_password("correct horse", "not-a-bcrypt-hash") is False


def test_needs_rehash_tracks_configured_cost():
    current = hash_password("pw")
    stronger = bcrypt.hashpw(b"pw", bcrypt.gensalt(rounds=settings.password_hash_rounds + 1))

    assert needs_rehash(current) is False
    assert needs_rehash(stronger.decode("utf-8")) is True
    assert needs_rehash(None) is False


def test_access_token_round_trip_and_unique_jti():
    issued_at = datetime.now(timezone.utc)
    first = create_access_token(user_id=7, username="sierra", uid=7, is_admin=False, now=issued_at)
    second = create_access_token(user_id=7, username="sierra", uid=7, is_admin=False, now=issued_at)

    claims = decode_token(first)
    assert claims["sub"] == "7"
    assert claims["username"] == "sierra"
    assert first != second
    assert claims["jti"] != decode_token(second)["jti"]


def test_decode_rejects_expired_and_tampered_tokens():
    expired = create_access_token(
        user_id=1,
        username="tango",
        uid=1,
        is_admin=True,
        now=datetime.now(timezone.utc) - timedelta(days=8),
    )
    forged = jwt.encode(
        {"sub": "1", "user_id": 1, "username": "tango", "uid": 1, "iat": 0, "exp": 2**31},
        "some-other-secret",
        algorithm="HS256",
    )

    with pytest.raises(ValueError):
        decode_token(expired)
    with pytest.raises(ValueError):
        decode_token(forged)


def test_identity_from_claims_rejects_inconsistent_payloads():
    good = {"sub": "3", "user_id": 3, "username": "uniform", "uid": 3, "is_admin": False}
    identity = identity_from_claims(good)
    assert identity.user_id == 3

    for broken in (
        {**good, "sub": "4"},
        {**good, "user_id": "3"},
        {key: value for key, value in good.items() if key != "username"},
    ):
        with pytest.raises(HTTPException) as exc_info:
            identity_from_claims(broken)
        assert exc_info.value.status_code == 403
