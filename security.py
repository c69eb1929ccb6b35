import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt

from config import Settings
from errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


# Password hashing

def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    return salt + "$" + hashlib.sha256((salt + password).encode()).hexdigest()


def verify_password(password: str, stored: str) -> bool:
    salt, sep, _ = stored.partition("$")
    if not sep:
        return False
    return hmac.compare_digest(hash_password(password, salt), stored)


# Tokens

@dataclass(frozen=True)
class Principal:
    user_id: str
    is_admin: bool


class TokenIssuer:
    """Issues and verifies stateless HS256 tokens keyed by the configured secret."""

    def __init__(self, settings: Settings):
        self._secret = settings.jwt_secret
        self._ttl = settings.token_ttl

    def issue(self, user_id: str, is_admin: bool, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "sub": user_id,
            "isAdmin": is_admin,
            "iat": issued_at,
            "exp": issued_at + self._ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Principal:
        try:
            claims = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise Unauthorized("Not authorized, token expired")
        except JWTError:
            raise Unauthorized("Not authorized, token failed")
        user_id = claims.get("sub")
        if not user_id:
            raise Unauthorized("Not authorized, token failed")
        return Principal(user_id=user_id, is_admin=bool(claims.get("isAdmin", False)))


# Access guard

def extract_token(request: Request, cookie_name: str) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(cookie_name)


def get_principal(request: Request) -> Principal:
    settings: Settings = request.app.state.settings
    token = extract_token(request, settings.cookie_name)
    if not token:
        raise Unauthorized("Not authorized, no token")
    principal = request.app.state.tokens.verify(token)
    request.state.principal = principal
    return principal


def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_admin:
        logger.warning("User %s denied admin route", principal.user_id)
        raise Forbidden("Not authorized as admin")
    return principal
