from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from config import Settings
from errors import Unauthorized
from security import TokenIssuer, hash_password, verify_password


@pytest.fixture
def issuer():
    return TokenIssuer(Settings(jwt_secret="unit-secret"))


def test_hash_is_salted():
    first = hash_password("hunter2")
    second = hash_password("hunter2")
    assert first != second
    assert "hunter2" not in first
    assert verify_password("hunter2", first)
    assert verify_password("hunter2", second)


def test_verify_password_rejects_wrong_or_malformed():
    stored = hash_password("hunter2")
    assert not verify_password("hunter3", stored)
    assert not verify_password("hunter2", "no-separator")
    assert not verify_password("hunter2", "")


def test_issued_token_round_trips(issuer):
    token = issuer.issue("abc123", True)
    principal = issuer.verify(token)
    assert principal.user_id == "abc123"
    assert principal.is_admin is True


def test_token_expires_after_one_day(issuer):
    issued_at = datetime.now(timezone.utc) - timedelta(days=1, minutes=1)
    token = issuer.issue("abc123", False, now=issued_at)
    with pytest.raises(Unauthorized):
        issuer.verify(token)


def test_token_still_valid_within_a_day(issuer):
    issued_at = datetime.now(timezone.utc) - timedelta(hours=23)
    token = issuer.issue("abc123", False, now=issued_at)
    assert issuer.verify(token).user_id == "abc123"


def test_token_signed_with_other_secret_is_rejected(issuer):
    forged = TokenIssuer(Settings(jwt_secret="other-secret")).issue("abc123", True)
    with pytest.raises(Unauthorized) as exc:
        issuer.verify(forged)
    assert exc.value.message == "Not authorized, token failed"


def test_tampered_claims_are_rejected(issuer):
    token = issuer.issue("abc123", False)
    header, _, signature = token.split(".")
    elevated = jwt.encode({"sub": "abc123", "isAdmin": True}, "guess", algorithm="HS256")
    forged = ".".join([header, elevated.split(".")[1], signature])
    with pytest.raises(Unauthorized):
        issuer.verify(forged)


def test_garbage_token_is_rejected(issuer):
    with pytest.raises(Unauthorized):
        issuer.verify("not-a-token")
